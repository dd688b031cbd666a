"""
Tests del bus de memoria: mapa de direcciones, bloqueos de la PPU, DMA,
Boot ROM y reenvío de registros de E/S.
"""

import pytest

from monoboy.errors import MalformedBootRom
from monoboy.gpu.ppu import PPUMode
from monoboy.io.audio import AudioWrite
from monoboy.io.interrupts import Interrupt
from monoboy.io.joypad import Button
from monoboy.memory.cartridge import Cartridge
from monoboy.memory.mmu import IO_BOOT, IO_DMA, IO_IE, IO_P1, IO_SB, IO_SC, MMU

from tests.helpers_rom import make_rom


class TestAddressMap:
    def test_wram_and_echo_are_mirrors(self):
        mmu = MMU()
        mmu.write_byte(0xC123, 0x42)
        assert mmu.read_byte(0xE123) == 0x42
        mmu.write_byte(0xFDFF, 0x99)
        assert mmu.read_byte(0xDDFF) == 0x99

    def test_hram_and_ie(self):
        mmu = MMU()
        mmu.write_byte(0xFF80, 0x11)
        mmu.write_byte(0xFFFE, 0x22)
        mmu.write_byte(IO_IE, 0x1F)
        assert mmu.read_byte(0xFF80) == 0x11
        assert mmu.read_byte(0xFFFE) == 0x22
        assert mmu.interrupts.enabled == 0x1F

    def test_unusable_region(self):
        mmu = MMU()
        mmu.write_byte(0xFEA0, 0x12)
        assert mmu.read_byte(0xFEA0) == 0xFF
        assert mmu.read_byte(0xFEFF) == 0xFF

    def test_unmapped_io_reads_ff(self):
        mmu = MMU()
        assert mmu.read_byte(0xFF03) == 0xFF
        assert mmu.read_byte(0xFF4D) == 0xFF

    def test_word_access_is_little_endian(self):
        mmu = MMU()
        mmu.write_word(0xC000, 0xBEEF)
        assert mmu.read_byte(0xC000) == 0xEF
        assert mmu.read_byte(0xC001) == 0xBE
        assert mmu.read_word(0xC000) == 0xBEEF

    def test_values_are_masked(self):
        mmu = MMU()
        mmu.write_byte(0x1C000, 0x1FF)
        assert mmu.read_byte(0xC000) == 0xFF

    def test_rom_and_external_ram_go_to_cartridge(self):
        cart = Cartridge(make_rom(program=[0x31], entry=0x0150, cart_type=0x03, ram_size_code=0x02))
        mmu = MMU(cart)
        assert mmu.read_byte(0x0150) == 0x31
        mmu.write_byte(0x0000, 0x0A)
        mmu.write_byte(0xA010, 0x77)
        assert mmu.read_byte(0xA010) == 0x77

    def test_no_cartridge_reads_ff(self):
        mmu = MMU()
        assert mmu.read_byte(0x0100) == 0xFF
        assert mmu.read_byte(0xA000) == 0xFF


class TestPPULocks:
    def test_vram_locked_during_pixel_transfer(self):
        mmu = MMU()
        mmu.write_byte(0x8000, 0x3C)
        mmu.ppu.lcdc = 0x80
        mmu.ppu.mode = PPUMode.PIXEL_TRANSFER

        assert mmu.read_byte(0x8000) == 0xFF
        mmu.write_byte(0x8000, 0x00)
        assert mmu.peek(0x8000) == 0x3C

    def test_oam_locked_during_oam_search(self):
        mmu = MMU()
        mmu.write_byte(0xFE00, 0x50)
        mmu.ppu.lcdc = 0x80
        mmu.ppu.mode = PPUMode.OAM_SEARCH

        assert mmu.read_byte(0xFE00) == 0xFF
        assert mmu.read_byte(0x8000) == 0x00, "VRAM libre en Mode 2"
        mmu.write_byte(0xFE00, 0x01)
        assert mmu.peek(0xFE00) == 0x50

    def test_no_locks_with_lcd_off(self):
        mmu = MMU()
        mmu.ppu.mode = PPUMode.PIXEL_TRANSFER
        mmu.write_byte(0x8000, 0x3C)
        mmu.write_byte(0xFE00, 0x50)
        assert mmu.read_byte(0x8000) == 0x3C
        assert mmu.read_byte(0xFE00) == 0x50

    def test_free_during_hblank(self):
        mmu = MMU()
        mmu.ppu.lcdc = 0x80
        mmu.ppu.mode = PPUMode.HBLANK
        mmu.write_byte(0x9800, 0x01)
        assert mmu.read_byte(0x9800) == 0x01


class TestDMA:
    def test_copies_160_bytes_to_oam(self):
        mmu = MMU()
        for i in range(0xA0):
            mmu.write_byte(0xC100 + i, i)
        mmu.write_byte(IO_DMA, 0xC1)
        assert bytes(mmu.oam) == bytes(range(0xA0))
        assert mmu.read_byte(IO_DMA) == 0xC1


class TestBootRom:
    def test_overlay_until_ff50(self):
        cart = Cartridge(make_rom(program=[0x31], entry=0x0000))
        boot = bytes([0xAA]) * 0x100
        mmu = MMU(cart, boot_rom=boot)

        assert mmu.read_byte(0x0000) == 0xAA
        assert mmu.read_byte(0x0100) == cart.read_rom(0x0100)
        assert mmu.boot_rom_mapped

        mmu.write_byte(IO_BOOT, 0x01)
        assert mmu.read_byte(0x0000) == 0x31
        assert not mmu.boot_rom_mapped

    def test_wrong_size(self):
        with pytest.raises(MalformedBootRom):
            MMU(boot_rom=bytes(0x80))


class TestIORouting:
    def test_audio_writes_reach_sink_with_timestamp(self):
        received = []
        mmu = MMU(audio_sink=received.append)
        mmu.timestamp = 1234
        mmu.write_byte(0xFF12, 0xF3)
        assert received == [AudioWrite(0xFF12, 0xF3, 1234)]

    def test_audio_read_masks(self):
        mmu = MMU()
        mmu.write_byte(0xFF26, 0x80)
        assert mmu.read_byte(0xFF26) == 0xF0
        mmu.write_byte(0xFF30, 0x12)
        assert mmu.read_byte(0xFF30) == 0x12

    def test_serial_transfer(self):
        sent = []
        mmu = MMU(serial_out=sent.append)
        mmu.write_byte(IO_SB, ord("P"))
        mmu.write_byte(IO_SC, 0x81)
        assert sent == [ord("P")]
        assert mmu.read_byte(IO_SB) == 0xFF
        assert mmu.read_byte(IO_SC) == 0x7F
        assert mmu.interrupts.requested & Interrupt.SERIAL

    def test_joypad_register(self):
        mmu = MMU()
        mmu.write_byte(IO_P1, 0x20)  # selecciona direcciones
        mmu.joypad.press(Button.RIGHT, mmu.interrupts)
        assert mmu.read_byte(IO_P1) == 0xEE
