"""
Helpers para tests de CPU.

Los programas de test se ejecutan desde WRAM (0xC000+) porque la ROM no es
escribible: una escritura en 0x0000-0x7FFF es un comando para el MBC.
"""

from monoboy.cpu.core import CPU
from monoboy.memory.mmu import MMU

TEST_EXEC_BASE = 0xC000


def load_program(mmu: MMU, regs, program_bytes: list[int], start_addr: int = TEST_EXEC_BASE) -> None:
    """
    Copia un programa en memoria y apunta PC a su inicio.

    Args:
        mmu: Bus donde escribir el programa
        regs: Registros de la CPU (se modifica PC)
        program_bytes: Opcodes e inmediatos
        start_addr: Dirección de inicio (por defecto 0xC000)
    """
    for i, byte_val in enumerate(program_bytes):
        mmu.write_byte(start_addr + i, byte_val)
    regs.pc = start_addr


def make_cpu(program_bytes: list[int] | None = None) -> tuple[CPU, MMU]:
    """CPU y MMU sin cartucho, con SP en HRAM y el programa cargado en WRAM."""
    mmu = MMU()
    cpu = CPU()
    cpu.registers.sp = 0xFFFE
    if program_bytes is not None:
        load_program(mmu, cpu.registers, program_bytes)
    return cpu, mmu
