"""
MMU (Memory Management Unit) - Bus de memoria

Espacio de direcciones de 16 bits de la Game Boy:

- 0x0000 - 0x3FFF: ROM Bank 0 (la Boot ROM tapa 0x0000-0x00FF mientras está mapeada)
- 0x4000 - 0x7FFF: ROM Bank N (switchable por el MBC)
- 0x8000 - 0x9FFF: VRAM (8KB)
- 0xA000 - 0xBFFF: RAM externa (cartucho)
- 0xC000 - 0xDFFF: WRAM (8KB)
- 0xE000 - 0xFDFF: Echo RAM (espejo de 0xC000-0xDDFF)
- 0xFE00 - 0xFE9F: OAM (160 bytes)
- 0xFEA0 - 0xFEFF: No usable (lee 0xFF, ignora escrituras)
- 0xFF00 - 0xFF7F: I/O
- 0xFF80 - 0xFFFE: HRAM (127 bytes)
- 0xFFFF: IE

La MMU es la única dueña de todo el almacenamiento (VRAM, WRAM, OAM, HRAM,
cartucho) y de los componentes con registros mapeados (interrupciones, timer,
joypad, serie, audio y PPU). La CPU, la PPU y el Timer no guardan referencias
al bus: lo reciben como argumento en cada paso.

Bloqueos de la PPU (sólo con el LCD encendido):
- Mode 3 (Pixel Transfer): VRAM y OAM inaccesibles
- Mode 2 (OAM Search): OAM inaccesible
Una lectura bloqueada devuelve 0xFF y una escritura bloqueada se descarta en
silencio, igual que en el hardware.

Los valores de 16 bits son Little-Endian.

Fuente: Pan Docs - Memory Map, I/O Ranges, OAM DMA Transfer
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..errors import MalformedBootRom
from ..gpu.ppu import PPU, IO_LCDC, IO_WX
from ..io.audio import AUDIO_END, AUDIO_START, AudioPort, AudioWrite
from ..io.interrupts import InterruptController
from ..io.joypad import Joypad
from ..io.serial import Serial
from ..io.timer import Timer
from .cartridge import Cartridge

logger = logging.getLogger(__name__)

# ========== Regiones ==========
VRAM_START = 0x8000
EXTERNAL_RAM_START = 0xA000
WRAM_START = 0xC000
ECHO_START = 0xE000
OAM_START = 0xFE00
UNUSABLE_START = 0xFEA0
IO_START = 0xFF00
HRAM_START = 0xFF80

VRAM_SIZE = 0x2000
WRAM_SIZE = 0x2000
OAM_SIZE = 0xA0
HRAM_SIZE = 0x7F
BOOT_ROM_SIZE = 0x100

# ========== Registros I/O ==========
IO_P1 = 0xFF00
IO_SB = 0xFF01
IO_SC = 0xFF02
IO_DIV = 0xFF04
IO_TIMA = 0xFF05
IO_TMA = 0xFF06
IO_TAC = 0xFF07
IO_IF = 0xFF0F
IO_DMA = 0xFF46
IO_BOOT = 0xFF50
IO_IE = 0xFFFF

DMA_LENGTH = 0xA0


class MMU:
    """
    Bus de memoria de la DMG.

    Args:
        cartridge: Cartucho ya validado (None en tests: la ROM lee 0xFF)
        boot_rom: Boot ROM opcional de 256 bytes
        serial_out: Callable que recibe los bytes enviados por el puerto serie
        audio_sink: Callable que recibe las escrituras en registros de audio

    Raises:
        MalformedBootRom: Si la Boot ROM no tiene 256 bytes
    """

    def __init__(
        self,
        cartridge: Cartridge | None = None,
        boot_rom: bytes | None = None,
        serial_out: Callable[[int], None] | None = None,
        audio_sink: Callable[[AudioWrite], None] | None = None,
    ) -> None:
        if boot_rom is not None and len(boot_rom) != BOOT_ROM_SIZE:
            raise MalformedBootRom(
                f"La Boot ROM debe tener {BOOT_ROM_SIZE} bytes, tiene {len(boot_rom)}"
            )

        self.cartridge = cartridge
        self.boot_rom: bytes | None = bytes(boot_rom) if boot_rom is not None else None

        self.vram = bytearray(VRAM_SIZE)
        self.wram = bytearray(WRAM_SIZE)
        self.oam = bytearray(OAM_SIZE)
        self.hram = bytearray(HRAM_SIZE)

        self.interrupts = InterruptController()
        self.timer = Timer()
        self.joypad = Joypad()
        self.serial = Serial(serial_out)
        self.audio = AudioPort(audio_sink)
        self.ppu = PPU()

        self._dma_source: int = 0
        # T-Cycles transcurridos; lo actualiza el SystemClock
        self.timestamp: int = 0

        if self.boot_rom is not None:
            logger.info("Boot ROM mapeada en 0x0000-0x00FF")

    @property
    def boot_rom_mapped(self) -> bool:
        return self.boot_rom is not None

    # ========== Lectura ==========

    def read_byte(self, address: int) -> int:
        """
        Lee un byte tal y como lo vería la CPU (aplica bloqueos de la PPU).

        Args:
            address: Dirección de 16 bits

        Returns:
            Byte leído (0x00-0xFF)
        """
        return self._read(address & 0xFFFF, True)

    def peek(self, address: int) -> int:
        """Lectura sin bloqueos de PPU, para el depurador."""
        return self._read(address & 0xFFFF, False)

    def _read(self, address: int, enforce_locks: bool) -> int:
        if address < 0x8000:
            if self.boot_rom is not None and address < BOOT_ROM_SIZE:
                return self.boot_rom[address]
            if self.cartridge is None:
                return 0xFF
            return self.cartridge.read_rom(address)
        if address < EXTERNAL_RAM_START:
            if enforce_locks and self.ppu.locks_vram():
                return 0xFF
            return self.vram[address - VRAM_START]
        if address < WRAM_START:
            if self.cartridge is None:
                return 0xFF
            return self.cartridge.read_ram(address)
        if address < ECHO_START:
            return self.wram[address - WRAM_START]
        if address < OAM_START:
            return self.wram[address - ECHO_START]
        if address < UNUSABLE_START:
            if enforce_locks and self.ppu.locks_oam():
                return 0xFF
            return self.oam[address - OAM_START]
        if address < IO_START:
            return 0xFF
        if address < HRAM_START:
            return self._read_io(address)
        if address < IO_IE:
            return self.hram[address - HRAM_START]
        return self.interrupts.enabled

    def _read_io(self, address: int) -> int:
        if address == IO_P1:
            return self.joypad.read()
        if address == IO_SB:
            return self.serial.read_sb()
        if address == IO_SC:
            return self.serial.read_sc()
        if address == IO_DIV:
            return self.timer.read_div()
        if address == IO_TIMA:
            return self.timer.read_tima()
        if address == IO_TMA:
            return self.timer.read_tma()
        if address == IO_TAC:
            return self.timer.read_tac()
        if address == IO_IF:
            return self.interrupts.read_if()
        if AUDIO_START <= address <= AUDIO_END:
            return self.audio.read(address)
        if address == IO_DMA:
            return self._dma_source
        if IO_LCDC <= address <= IO_WX:
            return self.ppu.read_register(address)
        # Registros no mapeados en DMG (incluido 0xFF50)
        return 0xFF

    def read_word(self, address: int) -> int:
        """Lee 16 bits en Little-Endian."""
        low = self.read_byte(address)
        high = self.read_byte(address + 1)
        return (high << 8) | low

    # ========== Escritura ==========

    def write_byte(self, address: int, value: int) -> None:
        """
        Escribe un byte en el bus.

        Las escrituras en 0x0000-0x7FFF van al MBC del cartucho como registros
        de control. Las escrituras en VRAM/OAM bloqueadas se descartan.

        Args:
            address: Dirección de 16 bits
            value: Valor (se enmascara a 8 bits)
        """
        address &= 0xFFFF
        value &= 0xFF

        if address < 0x8000:
            if self.cartridge is not None:
                self.cartridge.write_rom(address, value)
        elif address < EXTERNAL_RAM_START:
            if self.ppu.locks_vram():
                logger.debug(f"Escritura en VRAM bloqueada 0x{address:04X}")
                return
            self.vram[address - VRAM_START] = value
        elif address < WRAM_START:
            if self.cartridge is not None:
                self.cartridge.write_ram(address, value)
        elif address < ECHO_START:
            self.wram[address - WRAM_START] = value
        elif address < OAM_START:
            self.wram[address - ECHO_START] = value
        elif address < UNUSABLE_START:
            if self.ppu.locks_oam():
                logger.debug(f"Escritura en OAM bloqueada 0x{address:04X}")
                return
            self.oam[address - OAM_START] = value
        elif address < IO_START:
            pass
        elif address < HRAM_START:
            self._write_io(address, value)
        elif address < IO_IE:
            self.hram[address - HRAM_START] = value
        else:
            self.interrupts.set_enabled_mask(value)

    def _write_io(self, address: int, value: int) -> None:
        if address == IO_P1:
            self.joypad.write(value)
        elif address == IO_SB:
            self.serial.write_sb(value)
        elif address == IO_SC:
            self.serial.write_sc(value, self.interrupts)
        elif address == IO_DIV:
            self.timer.write_div(value)
        elif address == IO_TIMA:
            self.timer.write_tima(value)
        elif address == IO_TMA:
            self.timer.write_tma(value)
        elif address == IO_TAC:
            self.timer.write_tac(value)
        elif address == IO_IF:
            self.interrupts.set_requested_mask(value)
        elif AUDIO_START <= address <= AUDIO_END:
            self.audio.write(address, value, self.timestamp)
        elif address == IO_DMA:
            self._oam_dma(value)
        elif IO_LCDC <= address <= IO_WX:
            self.ppu.write_register(address, value, self)
        elif address == IO_BOOT:
            if value and self.boot_rom is not None:
                logger.info("Boot ROM desmapeada (escritura en 0xFF50)")
                self.boot_rom = None

    def write_word(self, address: int, value: int) -> None:
        """Escribe 16 bits en Little-Endian."""
        self.write_byte(address, value & 0xFF)
        self.write_byte(address + 1, (value >> 8) & 0xFF)

    def _oam_dma(self, value: int) -> None:
        """
        OAM DMA: copia 160 bytes desde (value << 8) a OAM.

        En hardware tarda 160 M-Cycles; aquí la copia es inmediata.
        """
        self._dma_source = value
        source = value << 8
        for i in range(DMA_LENGTH):
            self.oam[i] = self.peek(source + i)
