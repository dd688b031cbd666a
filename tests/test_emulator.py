"""
Tests de integración de la sesión de emulación (Monoboy) con ROMs sintéticas.
"""

import numpy as np
import pytest

from monoboy import Button, Monoboy
from monoboy.errors import MalformedCartridge, UnimplementedOpcode
from monoboy.gpu.ppu import DMG_PALETTE, SCREEN_HEIGHT, SCREEN_WIDTH
from monoboy.io.interrupts import Interrupt

from tests.helpers_rom import make_rom

# LD A,0x42 ; LD (0xC000),A ; HALT
STORE_AND_HALT = [0x3E, 0x42, 0xEA, 0x00, 0xC0, 0x76]


class TestSession:
    def test_program_runs_from_0100(self):
        gb = Monoboy(make_rom(STORE_AND_HALT))
        for _ in range(3):
            gb.step()
        assert gb.registers.a == 0x42
        assert gb.read_memory(0xC000) == 0x42
        assert gb.cpu.halted
        assert gb.get_total_cycles() == 2 + 4 + 1

    def test_bad_checksum_is_rejected(self):
        rom = bytearray(make_rom(STORE_AND_HALT))
        rom[0x014D] = (rom[0x014D] + 1) & 0xFF
        with pytest.raises(MalformedCartridge):
            Monoboy(bytes(rom))

    def test_post_boot_state(self):
        gb = Monoboy(make_rom())
        regs = gb.registers
        assert (regs.a, regs.f) == (0x01, 0xB0)
        assert (regs.b, regs.c, regs.d, regs.e, regs.h, regs.l) == (0x00, 0x13, 0x00, 0xD8, 0x01, 0x4D)
        assert regs.sp == 0xFFFE
        assert regs.pc == 0x0100
        assert gb.read_memory(0xFF40) == 0x91
        assert gb.read_memory(0xFF47) == 0xFC
        assert gb.interrupt_state() == {"ime": False, "ime_pending": False, "ie": 0x00, "if": 0xE0}

    def test_boot_rom_starts_at_zero(self):
        boot = bytes([0x00] * 0x100)
        gb = Monoboy(make_rom(), boot_rom=boot)
        assert gb.registers.pc == 0x0000
        assert gb.read_memory(0xFF40) == 0x00

    def test_from_files(self, tmp_path):
        path = tmp_path / "store.gb"
        path.write_bytes(make_rom(STORE_AND_HALT, title=b"STORE"))
        gb = Monoboy.from_files(path)
        assert gb.cartridge.title == "STORE"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Monoboy.from_files(tmp_path / "nope.gb")


class TestFrames:
    def test_run_frame_publishes_frame(self):
        gb = Monoboy(make_rom(STORE_AND_HALT))
        assert gb.run_frame() is True
        frame = gb.frame
        assert frame.pixels.shape == (SCREEN_HEIGHT, SCREEN_WIDTH)
        assert frame.pixels.dtype == np.uint8
        assert frame.palette == DMG_PALETTE
        assert gb.mmu.interrupts.requested & Interrupt.VBLANK

    def test_consecutive_frames_are_70224_t_cycles_apart(self):
        gb = Monoboy(make_rom(STORE_AND_HALT))
        gb.run_frame()
        first = gb.clock.get_total_t_cycles()
        gb.run_frame()
        second = gb.clock.get_total_t_cycles()
        assert second - first == 70224

    def test_custom_palette(self):
        palette = ((224, 248, 208), (136, 192, 112), (52, 104, 86), (8, 24, 32))
        gb = Monoboy(make_rom(), palette=palette)
        assert gb.frame.palette == palette

    def test_deterministic(self):
        def run():
            gb = Monoboy(make_rom(STORE_AND_HALT))
            gb.press(Button.START)
            for _ in range(2):
                gb.run_frame()
            return gb.registers, gb.get_total_cycles(), gb.frame.pixels.tobytes()

        assert run() == run()


class TestDebugger:
    def test_breakpoint_pauses(self):
        gb = Monoboy(make_rom(STORE_AND_HALT))
        gb.add_breakpoint(0x0102)
        assert gb.breakpoints == frozenset({0x0102})
        assert gb.run_frame() is False
        assert gb.paused
        assert gb.registers.pc == 0x0102
        assert gb.run_frame() is False, "Una sesión pausada no avanza"

        gb.remove_breakpoint(0x0102)
        gb.resume()
        assert gb.run_frame() is True

    def test_current_instruction(self):
        gb = Monoboy(make_rom(STORE_AND_HALT))
        assert gb.current_instruction() == (0x0100, "LD A,d8")
        gb.step()
        assert gb.current_instruction() == (0x0102, "LD (a16),A")

    def test_undefined_opcode_pauses_session(self):
        gb = Monoboy(make_rom([0xD3]))
        assert gb.current_instruction() == (0x0100, "DB 0xD3")
        with pytest.raises(UnimplementedOpcode) as excinfo:
            gb.step()
        assert excinfo.value.pc == 0x0100
        assert gb.paused
        assert gb.registers.pc == 0x0100
        assert gb.current_instruction() == (0x0100, "DB 0xD3")
        assert "0xD3" in str(excinfo.value)

    def test_register_snapshot_str(self):
        gb = Monoboy(make_rom())
        assert str(gb.registers) == "AF=01B0 BC=0013 DE=00D8 HL=014D SP=FFFE PC=0100 [Z-HC]"


class TestPeripherals:
    def test_serial_output(self):
        # LD A,'O' ; LDH (SB),A ; LD A,0x81 ; LDH (SC),A ; HALT
        program = [0x3E, ord("O"), 0xE0, 0x01, 0x3E, 0x81, 0xE0, 0x02, 0x76]
        sent = []
        gb = Monoboy(make_rom(program), serial_out=sent.append)
        for _ in range(5):
            gb.step()
        assert bytes(sent) == b"O"

    def test_audio_sink_receives_post_boot_and_program_writes(self):
        # LD A,0x77 ; LDH (NR50),A ; HALT
        program = [0x3E, 0x77, 0xE0, 0x24, 0x76]
        writes = []
        gb = Monoboy(make_rom(program), audio_sink=writes.append)
        boot_writes = len(writes)
        assert boot_writes > 0
        assert all(w.timestamp == 0 for w in writes)

        gb.step()
        gb.step()
        last = writes[-1]
        assert (last.address, last.value) == (0xFF24, 0x77)
        assert last.timestamp == 8

    def test_joypad_press_wakes_halt(self):
        # LD A,0x10 ; LDH (IE),A... IE está en 0xFFFF: LD (a16),A ; HALT ; INC B
        program = [0x3E, 0x10, 0xEA, 0xFF, 0xFF, 0x76, 0x04]
        gb = Monoboy(make_rom(program))
        for _ in range(4):
            gb.step()
        assert gb.cpu.halted
        gb.press(Button.A)
        gb.step()
        assert not gb.cpu.halted
        assert gb.registers.b == 0x01
        gb.release(Button.A)
