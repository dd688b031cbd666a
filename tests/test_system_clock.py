"""
Tests del reloj del sistema: conversión M->T y sincronización de Timer y PPU.
"""

from monoboy.gpu.ppu import PPUMode
from monoboy.memory.mmu import IO_LCDC
from monoboy.system_clock import SystemClock

from tests.helpers_cpu import make_cpu


def test_instruction_cycles_drive_timer_and_ppu():
    cpu, mmu = make_cpu([0x00] * 64)
    mmu.write_byte(IO_LCDC, 0x91)
    clock = SystemClock(cpu, mmu)

    for _ in range(20):
        assert clock.tick_instruction() == 1

    assert clock.get_total_cycles() == 20
    assert clock.get_total_t_cycles() == 80
    assert mmu.timestamp == 80
    assert mmu.timer.div_counter == 80
    assert mmu.ppu.mode == PPUMode.PIXEL_TRANSFER


def test_timer_driven_by_clock_wakes_halt():
    cpu, mmu = make_cpu([0x76, 0x00])  # HALT ; NOP
    mmu.write_byte(0xFFFF, 0x04)
    mmu.write_byte(0xFF07, 0x05)  # TIMA cada 16 T-Cycles
    mmu.write_byte(0xFF05, 0xFE)
    clock = SystemClock(cpu, mmu)

    clock.tick_instruction()
    steps = 0
    while cpu.halted and steps < 100:
        clock.tick_instruction()
        steps += 1

    assert not cpu.halted
    assert cpu.registers.pc == 0xC002
    assert clock.get_total_t_cycles() < 456
