"""
Monoboy - Sistema Principal (Placa Base)

Une el cartucho, el bus de memoria, la CPU y el reloj del sistema, y expone
la interfaz hacia el exterior:
- Frame completo (``frame``) en cada entrada de V-Blank
- Entrada de botones (``press``/``release``)
- Interfaz de depuración: registros, máscaras de interrupción, lectura de
  memoria, ejecución paso a paso y breakpoints
- Bucle de presentación con pygame (``run``)

Sin Boot ROM se reproduce el estado en que la Boot ROM de la DMG deja la
máquina al saltar a 0x0100 ("Post-Boot State").

Fuente: Pan Docs - Power Up Sequence
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .cpu.core import CPU
from .cpu.registers import RegisterSnapshot
from .errors import UnimplementedOpcode
from .gpu.ppu import CYCLES_PER_FRAME, DMG_PALETTE, Frame
from .io.audio import AudioWrite
from .io.joypad import Button
from .memory.cartridge import Cartridge
from .memory.mmu import MMU
from .system_clock import SystemClock

logger = logging.getLogger(__name__)

# Registros de CPU tras la Boot ROM de la DMG
POST_BOOT_AF = 0x01B0
POST_BOOT_BC = 0x0013
POST_BOOT_DE = 0x00D8
POST_BOOT_HL = 0x014D
POST_BOOT_SP = 0xFFFE
POST_BOOT_PC = 0x0100

# Registros I/O tras la Boot ROM de la DMG
POST_BOOT_IO = (
    (0xFF05, 0x00), (0xFF06, 0x00), (0xFF07, 0x00),
    (0xFF10, 0x80), (0xFF11, 0xBF), (0xFF12, 0xF3), (0xFF14, 0xBF),
    (0xFF16, 0x3F), (0xFF17, 0x00), (0xFF19, 0xBF),
    (0xFF1A, 0x7F), (0xFF1B, 0xFF), (0xFF1C, 0x9F), (0xFF1E, 0xBF),
    (0xFF20, 0xFF), (0xFF21, 0x00), (0xFF22, 0x00), (0xFF23, 0xBF),
    (0xFF24, 0x77), (0xFF25, 0xF3), (0xFF26, 0xF1),
    (0xFF40, 0x91), (0xFF42, 0x00), (0xFF43, 0x00), (0xFF45, 0x00),
    (0xFF47, 0xFC), (0xFF48, 0xFF), (0xFF49, 0xFF),
    (0xFF4A, 0x00), (0xFF4B, 0x00), (0xFFFF, 0x00),
)


class Monoboy:
    """
    Sesión de emulación.

    El cartucho se valida antes de crear ningún otro componente: si la ROM
    no es válida se lanza ``MalformedCartridge`` y nunca llega a existir un
    reloj que ejecutar.

    Args:
        rom: Contenido de la ROM
        boot_rom: Boot ROM opcional (256 bytes)
        serial_out: Callable que recibe los bytes enviados por el puerto serie
        audio_sink: Callable que recibe las escrituras en registros de audio
        palette: RGB de los cuatro tonos, entregado con cada frame

    Raises:
        MalformedCartridge: Si la ROM no supera la validación de cabecera
        MalformedBootRom: Si la Boot ROM no tiene 256 bytes
    """

    def __init__(
        self,
        rom: bytes,
        boot_rom: bytes | None = None,
        serial_out: Callable[[int], None] | None = None,
        audio_sink: Callable[[AudioWrite], None] | None = None,
        palette: tuple[tuple[int, int, int], ...] = DMG_PALETTE,
    ) -> None:
        self.cartridge = Cartridge(rom)
        self.mmu = MMU(self.cartridge, boot_rom, serial_out, audio_sink)
        self.cpu = CPU()
        self.clock = SystemClock(self.cpu, self.mmu)
        self.palette = tuple(palette)

        self.paused: bool = False
        self._breakpoints: set[int] = set()

        if boot_rom is None:
            self._initialize_post_boot_state()

    @classmethod
    def from_files(
        cls, rom_path: str | Path, boot_rom_path: str | Path | None = None, **kwargs
    ) -> Monoboy:
        """Carga la ROM (y la Boot ROM, si se indica) desde disco."""
        rom = Path(rom_path).read_bytes()
        boot_rom = Path(boot_rom_path).read_bytes() if boot_rom_path is not None else None
        return cls(rom, boot_rom=boot_rom, **kwargs)

    def _initialize_post_boot_state(self) -> None:
        regs = self.cpu.registers
        regs.set_af(POST_BOOT_AF)
        regs.set_bc(POST_BOOT_BC)
        regs.set_de(POST_BOOT_DE)
        regs.set_hl(POST_BOOT_HL)
        regs.sp = POST_BOOT_SP
        regs.pc = POST_BOOT_PC
        for address, value in POST_BOOT_IO:
            self.mmu.write_byte(address, value)
        logger.info(f"Estado post-boot aplicado: {regs}")

    # ========== Ejecución ==========

    def step(self) -> int:
        """
        Ejecuta una instrucción y avanza Timer y PPU.

        Returns:
            M-Cycles consumidos

        Raises:
            UnimplementedOpcode: La sesión queda pausada y el error se propaga
        """
        try:
            return self.clock.tick_instruction()
        except UnimplementedOpcode:
            self.paused = True
            raise

    def run_frame(self) -> bool:
        """
        Ejecuta hasta completar un frame, como mucho 70224 T-Cycles.

        Se detiene antes si el PC alcanza un breakpoint (la sesión queda
        pausada) o si la sesión ya estaba pausada.

        Returns:
            True si se completó un frame
        """
        if self.paused:
            return False
        ppu = self.mmu.ppu
        start = self.clock.get_total_t_cycles()
        while self.clock.get_total_t_cycles() - start < CYCLES_PER_FRAME:
            self.step()
            if ppu.is_frame_ready():
                return True
            if self.cpu.registers.pc in self._breakpoints:
                self.paused = True
                logger.info(f"Breakpoint alcanzado en 0x{self.cpu.registers.pc:04X}")
                return False
        return False

    @property
    def frame(self) -> Frame:
        """Último frame completo (se publica en cada entrada de V-Blank)."""
        return Frame(self.mmu.ppu.completed_frame, self.palette)

    # ========== Entrada ==========

    def press(self, button: Button) -> None:
        self.mmu.joypad.press(button, self.mmu.interrupts)

    def release(self, button: Button) -> None:
        self.mmu.joypad.release(button)

    # ========== Depuración ==========

    @property
    def registers(self) -> RegisterSnapshot:
        return self.cpu.registers.snapshot()

    def interrupt_state(self) -> dict[str, int | bool]:
        interrupts = self.mmu.interrupts
        return {
            "ime": interrupts.ime,
            "ime_pending": interrupts.ime_pending,
            "ie": interrupts.enabled,
            "if": interrupts.read_if(),
        }

    def read_memory(self, address: int) -> int:
        """Lee cualquier dirección sin efectos secundarios ni bloqueos de PPU."""
        return self.mmu.peek(address)

    def current_instruction(self) -> tuple[int, str]:
        """PC actual y el mnemónico de la instrucción que se ejecutará."""
        pc = self.cpu.registers.pc
        instruction = self.cpu.decode_at(self.mmu, pc)
        if instruction is None:
            return pc, f"DB 0x{self.mmu.peek(pc):02X}"
        return pc, instruction.mnemonic

    def add_breakpoint(self, address: int) -> None:
        self._breakpoints.add(address & 0xFFFF)

    def remove_breakpoint(self, address: int) -> None:
        self._breakpoints.discard(address & 0xFFFF)

    @property
    def breakpoints(self) -> frozenset[int]:
        return frozenset(self._breakpoints)

    def resume(self) -> None:
        self.paused = False

    def get_total_cycles(self) -> int:
        """M-Cycles totales desde el arranque."""
        return self.clock.get_total_cycles()

    # ========== Presentación ==========

    def run(self, scale: int = 3, fps: int = 60) -> None:
        """
        Bucle de presentación: eventos de teclado, un frame, dibujo.

        Termina al cerrar la ventana o pulsar Escape.
        """
        from .gpu.renderer import Renderer

        renderer = Renderer(scale=scale, title=f"Monoboy - {self.cartridge.title}")
        try:
            while renderer.handle_events(self):
                if not self.paused:
                    self.run_frame()
                renderer.render_frame(self.frame)
                renderer.tick(fps)
        finally:
            renderer.quit()
