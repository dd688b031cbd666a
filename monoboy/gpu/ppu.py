"""
PPU (Pixel Processing Unit) - Unidad de Procesamiento de Píxeles

La PPU recorre 154 scanlines de 456 T-Cycles (dots) por frame:
- Líneas 0-143 (visibles), divididas en tres modos:
  - Mode 2 (OAM Search): dots 0-79. Elige hasta 10 sprites que cortan la
    línea, en orden de OAM. La CPU no puede acceder a OAM.
  - Mode 3 (Pixel Transfer): desde el dot 80, 172 dots más los retrasos por
    SCX % 8, por cada sprite seleccionado y por la ventana. La CPU no puede
    acceder ni a VRAM ni a OAM. Aquí se compone la línea en el framebuffer.
  - Mode 0 (H-Blank): resto de la línea hasta el dot 455.
- Líneas 144-153: Mode 1 (V-Blank). Al entrar en la línea 144 se solicita la
  interrupción V-Blank y el frame se publica como "completo".

Un frame dura 154 * 456 = 70224 T-Cycles.

STAT (0xFF41) permite solicitar la interrupción LCD STAT por cuatro fuentes
(bit 3 H-Blank, bit 4 V-Blank, bit 5 OAM, bit 6 LY=LYC). Las cuatro se
combinan en una única señal y la interrupción sólo se solicita en su flanco
de subida ("STAT blocking").

Con LCDC.7 = 0 el LCD está apagado: LY queda en 0, la PPU no avanza, STAT
informa modo 0 y VRAM/OAM quedan libres.

El framebuffer guarda el tono (0-3) de cada píxel ya pasado por BGP/OBP0/OBP1.

Fuente: Pan Docs - LCD Control, LCD Status, Rendering, OAM
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from ..io.interrupts import Interrupt

if TYPE_CHECKING:
    from ..memory.mmu import MMU

logger = logging.getLogger(__name__)

SCREEN_WIDTH = 160
SCREEN_HEIGHT = 144

# Timing (en T-Cycles / dots)
CYCLES_PER_SCANLINE = 456
VBLANK_START = 144
TOTAL_LINES = 154
CYCLES_PER_FRAME = TOTAL_LINES * CYCLES_PER_SCANLINE  # 70224
OAM_SEARCH_CYCLES = 80
PIXEL_TRANSFER_BASE_CYCLES = 172
SPRITE_FETCH_PENALTY = 6
WINDOW_FETCH_PENALTY = 6
MAX_SPRITES_PER_LINE = 10

# Registros de la PPU
IO_LCDC = 0xFF40
IO_STAT = 0xFF41
IO_SCY = 0xFF42
IO_SCX = 0xFF43
IO_LY = 0xFF44
IO_LYC = 0xFF45
IO_BGP = 0xFF47
IO_OBP0 = 0xFF48
IO_OBP1 = 0xFF49
IO_WY = 0xFF4A
IO_WX = 0xFF4B

# Bits de LCDC
LCDC_BG_ENABLE = 0x01
LCDC_OBJ_ENABLE = 0x02
LCDC_OBJ_SIZE = 0x04
LCDC_BG_MAP = 0x08
LCDC_TILE_DATA = 0x10
LCDC_WINDOW_ENABLE = 0x20
LCDC_WINDOW_MAP = 0x40
LCDC_LCD_ENABLE = 0x80

# Bits de STAT
STAT_COINCIDENCE = 0x04
STAT_HBLANK_IRQ = 0x08
STAT_VBLANK_IRQ = 0x10
STAT_OAM_IRQ = 0x20
STAT_LYC_IRQ = 0x40
STAT_WRITABLE = STAT_HBLANK_IRQ | STAT_VBLANK_IRQ | STAT_OAM_IRQ | STAT_LYC_IRQ

# Atributos de sprite (byte 3 de cada entrada de OAM)
OBJ_BEHIND_BG = 0x80
OBJ_Y_FLIP = 0x40
OBJ_X_FLIP = 0x20
OBJ_PALETTE_1 = 0x10

# Offsets dentro de VRAM (0x8000 = 0)
TILE_MAP_0 = 0x1800
TILE_MAP_1 = 0x1C00
TILE_DATA_SIGNED_BASE = 0x1000


# Tono (0-3) -> RGB. 0 es el más claro.
DMG_PALETTE = (
    (255, 255, 255),
    (170, 170, 170),
    (85, 85, 85),
    (0, 0, 0),
)


class Frame(NamedTuple):
    """
    Frame completo para la capa de presentación.

    pixels: array (144, 160) de sólo lectura con el tono de cada píxel (0-3)
    palette: RGB de cada tono
    """

    pixels: np.ndarray
    palette: tuple[tuple[int, int, int], ...]


class PPUMode(IntEnum):
    HBLANK = 0
    VBLANK = 1
    OAM_SEARCH = 2
    PIXEL_TRANSFER = 3


def decode_tile_line(byte1: int, byte2: int) -> list[int]:
    """
    Decodifica una fila de 8 píxeles de un tile 2bpp.

    byte1 lleva el bit bajo de cada píxel y byte2 el alto; el bit 7 es el
    píxel más a la izquierda.

    Returns:
        Lista de 8 índices de color (0-3), de izquierda a derecha
    """
    return [
        (((byte2 >> bit) & 1) << 1) | ((byte1 >> bit) & 1)
        for bit in range(7, -1, -1)
    ]


def apply_palette(palette: int, color_index: int) -> int:
    """Traduce un índice de color (0-3) a un tono según BGP/OBP0/OBP1."""
    return (palette >> (color_index * 2)) & 0x03


class PPU:
    """
    Máquina de estados de la PPU.

    No guarda referencia a la MMU: ``step`` recibe el bus para leer VRAM/OAM
    y solicitar interrupciones.
    """

    def __init__(self) -> None:
        self.lcdc: int = 0
        self.stat_enable: int = 0
        self.scy: int = 0
        self.scx: int = 0
        self.ly: int = 0
        self.lyc: int = 0
        self.bgp: int = 0
        self.obp0: int = 0
        self.obp1: int = 0
        self.wy: int = 0
        self.wx: int = 0

        self.dot: int = 0
        self.mode: PPUMode = PPUMode.HBLANK
        self.window_line: int = 0
        self.stat_interrupt_line: bool = False
        self.frame_ready: bool = False
        self.frames_completed: int = 0

        self.framebuffer = np.zeros((SCREEN_HEIGHT, SCREEN_WIDTH), dtype=np.uint8)
        self.completed_frame = self._publish()

        # Sprites seleccionados en OAM Search: (x, índice_oam, y, tile, atributos)
        self._line_sprites: list[tuple[int, int, int, int, int]] = []
        self._window_on_line: bool = False
        self._pixel_transfer_cycles: int = PIXEL_TRANSFER_BASE_CYCLES

    # ========== Estado ==========

    @property
    def lcd_enabled(self) -> bool:
        return bool(self.lcdc & LCDC_LCD_ENABLE)

    def locks_vram(self) -> bool:
        return self.lcd_enabled and self.mode == PPUMode.PIXEL_TRANSFER

    def locks_oam(self) -> bool:
        return self.lcd_enabled and self.mode in (PPUMode.OAM_SEARCH, PPUMode.PIXEL_TRANSFER)

    def is_frame_ready(self) -> bool:
        """Devuelve True una vez por frame completo (consume el flag)."""
        if self.frame_ready:
            self.frame_ready = False
            return True
        return False

    # ========== Timing ==========

    def step(self, mmu: MMU, t_cycles: int) -> None:
        """
        Avanza la PPU los T-Cycles indicados.

        Avanza a saltos hasta el siguiente límite de modo o de línea en vez de
        dot a dot; el resultado es idéntico porque no hay eventos intermedios.

        Args:
            mmu: Bus del que leer VRAM/OAM y donde solicitar interrupciones
            t_cycles: T-Cycles consumidos por la última instrucción
        """
        if not self.lcd_enabled:
            return

        remaining = t_cycles
        while remaining > 0:
            boundary = self._next_boundary()
            advance = min(remaining, boundary - self.dot)
            self.dot += advance
            remaining -= advance
            if self.dot >= boundary:
                self._on_boundary(mmu)

    def _next_boundary(self) -> int:
        if self.mode == PPUMode.OAM_SEARCH:
            return OAM_SEARCH_CYCLES
        if self.mode == PPUMode.PIXEL_TRANSFER:
            return OAM_SEARCH_CYCLES + self._pixel_transfer_cycles
        return CYCLES_PER_SCANLINE

    def _on_boundary(self, mmu: MMU) -> None:
        if self.mode == PPUMode.OAM_SEARCH:
            self._select_sprites(mmu)
            self._pixel_transfer_cycles = self._compute_pixel_transfer_cycles()
            self._set_mode(PPUMode.PIXEL_TRANSFER, mmu)
            self._render_scanline(mmu)
            return

        if self.mode == PPUMode.PIXEL_TRANSFER:
            self._set_mode(PPUMode.HBLANK, mmu)
            return

        # Fin de línea (H-Blank o V-Blank)
        self.dot = 0
        self.ly += 1
        if self.ly == VBLANK_START:
            self._enter_vblank(mmu)
        elif self.ly >= TOTAL_LINES:
            self.ly = 0
            self.window_line = 0
            self._set_mode(PPUMode.OAM_SEARCH, mmu)
        elif self.ly < VBLANK_START:
            self._set_mode(PPUMode.OAM_SEARCH, mmu)
        else:
            self._update_stat_line(mmu)

    def _enter_vblank(self, mmu: MMU) -> None:
        self.completed_frame = self._publish()
        self.frame_ready = True
        self.frames_completed += 1
        mmu.interrupts.request(Interrupt.VBLANK)
        self._set_mode(PPUMode.VBLANK, mmu)

    def _publish(self):
        frame = self.framebuffer.copy()
        frame.flags.writeable = False
        return frame

    def _set_mode(self, mode: PPUMode, mmu: MMU) -> None:
        self.mode = mode
        self._update_stat_line(mmu)

    def _update_stat_line(self, mmu: MMU) -> None:
        """Recalcula la señal STAT y solicita la interrupción en su flanco de subida."""
        line = False
        if self.lcd_enabled:
            line = (
                (self.stat_enable & STAT_LYC_IRQ and self.ly == self.lyc)
                or (self.stat_enable & STAT_HBLANK_IRQ and self.mode == PPUMode.HBLANK)
                or (self.stat_enable & STAT_VBLANK_IRQ and self.mode == PPUMode.VBLANK)
                or (self.stat_enable & STAT_OAM_IRQ and self.mode == PPUMode.OAM_SEARCH)
            )
            line = bool(line)
        if line and not self.stat_interrupt_line:
            mmu.interrupts.request(Interrupt.STAT)
        self.stat_interrupt_line = line

    def _compute_pixel_transfer_cycles(self) -> int:
        cycles = PIXEL_TRANSFER_BASE_CYCLES + (self.scx % 8)
        if self.lcdc & LCDC_OBJ_ENABLE:
            cycles += SPRITE_FETCH_PENALTY * len(self._line_sprites)
        if self._window_on_line:
            cycles += WINDOW_FETCH_PENALTY
        return cycles

    # ========== Registros ==========

    def read_register(self, address: int) -> int:
        if address == IO_LCDC:
            return self.lcdc
        if address == IO_STAT:
            coincidence = STAT_COINCIDENCE if self.ly == self.lyc else 0
            return 0x80 | self.stat_enable | coincidence | int(self.mode)
        if address == IO_SCY:
            return self.scy
        if address == IO_SCX:
            return self.scx
        if address == IO_LY:
            return self.ly
        if address == IO_LYC:
            return self.lyc
        if address == IO_BGP:
            return self.bgp
        if address == IO_OBP0:
            return self.obp0
        if address == IO_OBP1:
            return self.obp1
        if address == IO_WY:
            return self.wy
        if address == IO_WX:
            return self.wx
        return 0xFF

    def write_register(self, address: int, value: int, mmu: MMU) -> None:
        value &= 0xFF
        if address == IO_LCDC:
            self._write_lcdc(value, mmu)
        elif address == IO_STAT:
            # Los bits 0-2 son de sólo lectura
            self.stat_enable = value & STAT_WRITABLE
            self._update_stat_line(mmu)
        elif address == IO_SCY:
            self.scy = value
        elif address == IO_SCX:
            self.scx = value
        elif address == IO_LY:
            # LY es de sólo lectura
            pass
        elif address == IO_LYC:
            self.lyc = value
            self._update_stat_line(mmu)
        elif address == IO_BGP:
            self.bgp = value
        elif address == IO_OBP0:
            self.obp0 = value
        elif address == IO_OBP1:
            self.obp1 = value
        elif address == IO_WY:
            self.wy = value
        elif address == IO_WX:
            self.wx = value

    def _write_lcdc(self, value: int, mmu: MMU) -> None:
        was_enabled = self.lcd_enabled
        self.lcdc = value
        if was_enabled and not self.lcd_enabled:
            logger.debug("LCD apagado: LY=0, modo 0")
            self.ly = 0
            self.dot = 0
            self.window_line = 0
            self.mode = PPUMode.HBLANK
            self.stat_interrupt_line = False
        elif not was_enabled and self.lcd_enabled:
            logger.debug("LCD encendido: comienza en línea 0 (OAM Search)")
            self.ly = 0
            self.dot = 0
            self.window_line = 0
            self._set_mode(PPUMode.OAM_SEARCH, mmu)

    # ========== Renderizado ==========

    def _select_sprites(self, mmu: MMU) -> None:
        """OAM Search: hasta 10 sprites que cortan la línea actual, en orden de OAM."""
        oam = mmu.oam
        height = 16 if self.lcdc & LCDC_OBJ_SIZE else 8
        selected: list[tuple[int, int, int, int, int]] = []
        for index in range(40):
            base = index * 4
            y = oam[base] - 16
            if y <= self.ly < y + height:
                selected.append((oam[base + 1], index, y, oam[base + 2], oam[base + 3]))
                if len(selected) == MAX_SPRITES_PER_LINE:
                    break
        self._line_sprites = selected
        self._window_on_line = (
            bool(self.lcdc & LCDC_WINDOW_ENABLE)
            and bool(self.lcdc & LCDC_BG_ENABLE)
            and self.ly >= self.wy
            and self.wx <= 166
        )

    def _tile_row(self, vram: bytearray, tile_index: int, row: int) -> list[int]:
        if self.lcdc & LCDC_TILE_DATA:
            address = tile_index * 16
        else:
            # Direccionamiento con signo respecto a 0x9000
            signed = tile_index - 256 if tile_index > 127 else tile_index
            address = TILE_DATA_SIGNED_BASE + signed * 16
        address += row * 2
        return decode_tile_line(vram[address], vram[address + 1])

    def _render_scanline(self, mmu: MMU) -> None:
        vram = mmu.vram
        ly = self.ly
        bg_indices = [0] * SCREEN_WIDTH
        line = self.framebuffer[ly]

        if self.lcdc & LCDC_BG_ENABLE:
            map_base = TILE_MAP_1 if self.lcdc & LCDC_BG_MAP else TILE_MAP_0
            y = (ly + self.scy) & 0xFF
            map_row = map_base + (y // 8) * 32
            cached_column = -1
            pixels: list[int] = []
            for x in range(SCREEN_WIDTH):
                bx = (x + self.scx) & 0xFF
                column = bx // 8
                if column != cached_column:
                    pixels = self._tile_row(vram, vram[map_row + column], y % 8)
                    cached_column = column
                bg_indices[x] = pixels[bx % 8]

            if self._window_on_line:
                self._render_window(vram, bg_indices)

            bgp = self.bgp
            for x in range(SCREEN_WIDTH):
                line[x] = apply_palette(bgp, bg_indices[x])
        else:
            # En DMG, LCDC.0 a 0 deja fondo y ventana en blanco sin pasar por BGP
            line[:] = 0

        if self.lcdc & LCDC_OBJ_ENABLE and self._line_sprites:
            self._render_sprites(vram, bg_indices, line)

    def _render_window(self, vram: bytearray, bg_indices: list[int]) -> None:
        start = self.wx - 7
        if start >= SCREEN_WIDTH:
            return
        map_base = TILE_MAP_1 if self.lcdc & LCDC_WINDOW_MAP else TILE_MAP_0
        wy = self.window_line
        map_row = map_base + (wy // 8) * 32
        cached_column = -1
        pixels: list[int] = []
        for x in range(max(0, start), SCREEN_WIDTH):
            wx = x - start
            column = wx // 8
            if column != cached_column:
                pixels = self._tile_row(vram, vram[map_row + column], wy % 8)
                cached_column = column
            bg_indices[x] = pixels[wx % 8]
        self.window_line += 1

    def _render_sprites(self, vram: bytearray, bg_indices: list[int], line) -> None:
        """
        Dibuja los sprites seleccionados. En DMG gana el de menor X y, a igual
        X, el de menor índice de OAM. Un píxel opaco de un sprite con más
        prioridad oculta a los de menos aunque el fondo lo tape a él.
        """
        height = 16 if self.lcdc & LCDC_OBJ_SIZE else 8
        owned = [False] * SCREEN_WIDTH
        for x_pos, _, y, tile, attrs in sorted(self._line_sprites, key=lambda s: (s[0], s[1])):
            row = self.ly - y
            if attrs & OBJ_Y_FLIP:
                row = height - 1 - row
            if height == 16:
                tile &= 0xFE
            address = tile * 16 + row * 2
            pixels = decode_tile_line(vram[address], vram[address + 1])
            if attrs & OBJ_X_FLIP:
                pixels.reverse()
            palette = self.obp1 if attrs & OBJ_PALETTE_1 else self.obp0
            left = x_pos - 8
            for i, color in enumerate(pixels):
                x = left + i
                if color == 0 or not 0 <= x < SCREEN_WIDTH or owned[x]:
                    continue
                owned[x] = True
                if attrs & OBJ_BEHIND_BG and bg_indices[x] != 0:
                    continue
                line[x] = apply_palette(palette, color)
