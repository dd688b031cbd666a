"""
Memory Bank Controllers (MBC)

Un cartucho sólo expone 32KB de ROM (0x0000-0x7FFF) y 8KB de RAM externa
(0xA000-0xBFFF) a la CPU. Los cartuchos mayores llevan un MBC que remapea esas
ventanas a bancos de 16KB (ROM) y 8KB (RAM). La CPU cambia de banco
escribiendo en el rango de ROM: esas escrituras no modifican la ROM, se
interpretan como registros de control.

Variantes implementadas:
- NoMBC (0x00, 0x08, 0x09): 32KB fijos, RAM opcional sin bancos.
- MBC1 (0x01-0x03): banco ROM de 5 bits (0 -> 1), registro alto de 2 bits
  y modo de banking.
- MBC3 (0x0F-0x13): banco ROM de 7 bits (0 -> 1), 4 bancos de RAM y registros
  RTC (0x08-0x0C) como almacenamiento latcheado sin reloj real.
- MBC5 (0x19-0x1E): banco ROM de 9 bits (el 0 es seleccionable), 16 bancos de
  RAM.

Cualquier índice de banco se reduce módulo el número real de bancos: un
banco fuera de rango no es un error, se "da la vuelta" como en el hardware.

Para añadir una variante basta con una subclase de ``MBC`` y su entrada en
``MBC_REGISTRY``; la MMU no cambia.

Fuente: Pan Docs - Memory Bank Controllers
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

ROM_BANK_SIZE = 0x4000
RAM_BANK_SIZE = 0x2000

RAM_ENABLE_VALUE = 0x0A


class MBC:
    """
    Base común: almacenamiento de ROM/RAM y resolución de direcciones.

    Las subclases mantienen ``rom_bank_low`` (ventana 0x0000-0x3FFF),
    ``rom_bank`` (ventana 0x4000-0x7FFF), ``ram_bank`` y ``ram_enabled``, y
    redefinen ``write_control``.

    Args:
        rom: Contenido completo de la ROM
        ram_size: Tamaño en bytes de la RAM externa (0 si no tiene)
    """

    name = "MBC"

    def __init__(self, rom: bytes, ram_size: int) -> None:
        self.rom = rom
        self.rom_banks = max(1, len(rom) // ROM_BANK_SIZE)
        self.ram = bytearray(ram_size)
        self.ram_banks = max(1, ram_size // RAM_BANK_SIZE)
        self.rom_bank_low: int = 0
        self.rom_bank: int = 1
        self.ram_bank: int = 0
        self.ram_enabled: bool = False

    def read_rom(self, address: int) -> int:
        if address < ROM_BANK_SIZE:
            bank = self.rom_bank_low % self.rom_banks
            offset = bank * ROM_BANK_SIZE + address
        else:
            bank = self.rom_bank % self.rom_banks
            offset = bank * ROM_BANK_SIZE + (address - ROM_BANK_SIZE)
        if offset >= len(self.rom):
            return 0xFF
        return self.rom[offset]

    def write_control(self, address: int, value: int) -> None:
        """Registro de control. Sin MBC las escrituras en ROM no tienen efecto."""

    def _ram_offset(self, address: int) -> int | None:
        if not self.ram_enabled or not self.ram:
            return None
        bank = self.ram_bank % self.ram_banks
        return (bank * RAM_BANK_SIZE + (address - 0xA000)) % len(self.ram)

    def read_ram(self, address: int) -> int:
        offset = self._ram_offset(address)
        if offset is None:
            return 0xFF
        return self.ram[offset]

    def write_ram(self, address: int, value: int) -> None:
        offset = self._ram_offset(address)
        if offset is not None:
            self.ram[offset] = value & 0xFF


class NoMBC(MBC):
    """ROM de 32KB sin bancos. La RAM, si existe, está siempre accesible."""

    name = "ROM ONLY"

    def __init__(self, rom: bytes, ram_size: int) -> None:
        super().__init__(rom, ram_size)
        self.ram_enabled = True


class MBC1(MBC):
    """
    MBC1.

    - 0x0000-0x1FFF: RAM enable (0x0A en el nibble bajo)
    - 0x2000-0x3FFF: bits 0-4 del banco ROM (0 se trata como 1)
    - 0x4000-0x5FFF: registro de 2 bits (bits 5-6 del banco ROM o banco RAM)
    - 0x6000-0x7FFF: modo (0 = simple, 1 = avanzado)

    En modo 1 el registro alto también afecta a la ventana 0x0000-0x3FFF y
    selecciona el banco de RAM.
    """

    name = "MBC1"

    def __init__(self, rom: bytes, ram_size: int) -> None:
        super().__init__(rom, ram_size)
        self._bank1: int = 1
        self._bank2: int = 0
        self._mode: int = 0

    def write_control(self, address: int, value: int) -> None:
        if address < 0x2000:
            self.ram_enabled = (value & 0x0F) == RAM_ENABLE_VALUE
        elif address < 0x4000:
            self._bank1 = (value & 0x1F) or 1
        elif address < 0x6000:
            self._bank2 = value & 0x03
        else:
            self._mode = value & 0x01
        self._update_banks()

    def _update_banks(self) -> None:
        self.rom_bank = ((self._bank2 << 5) | self._bank1) % self.rom_banks
        if self._mode:
            self.rom_bank_low = (self._bank2 << 5) % self.rom_banks
            self.ram_bank = self._bank2 % self.ram_banks
        else:
            self.rom_bank_low = 0
            self.ram_bank = 0


class MBC3(MBC):
    """
    MBC3 (sin tick del RTC).

    - 0x0000-0x1FFF: RAM/RTC enable
    - 0x2000-0x3FFF: banco ROM de 7 bits (0 se trata como 1)
    - 0x4000-0x5FFF: 0x00-0x03 banco de RAM, 0x08-0x0C registro RTC
    - 0x6000-0x7FFF: latch del RTC (no hace nada: los registros no avanzan)
    """

    name = "MBC3"

    RTC_FIRST = 0x08
    RTC_LAST = 0x0C

    def __init__(self, rom: bytes, ram_size: int) -> None:
        super().__init__(rom, ram_size)
        self.rtc = bytearray(self.RTC_LAST - self.RTC_FIRST + 1)
        self._rtc_select: int | None = None

    def write_control(self, address: int, value: int) -> None:
        if address < 0x2000:
            self.ram_enabled = (value & 0x0F) == RAM_ENABLE_VALUE
        elif address < 0x4000:
            self.rom_bank = ((value & 0x7F) or 1) % self.rom_banks
        elif address < 0x6000:
            if self.RTC_FIRST <= value <= self.RTC_LAST:
                self._rtc_select = value - self.RTC_FIRST
            elif value <= 0x03:
                self._rtc_select = None
                self.ram_bank = value
            else:
                logger.debug(f"MBC3: selección de banco RAM/RTC ignorada 0x{value:02X}")

    def read_ram(self, address: int) -> int:
        if self._rtc_select is not None:
            return self.rtc[self._rtc_select] if self.ram_enabled else 0xFF
        return super().read_ram(address)

    def write_ram(self, address: int, value: int) -> None:
        if self._rtc_select is not None:
            if self.ram_enabled:
                self.rtc[self._rtc_select] = value & 0xFF
            return
        super().write_ram(address, value)


class MBC5(MBC):
    """
    MBC5.

    - 0x0000-0x1FFF: RAM enable
    - 0x2000-0x2FFF: 8 bits bajos del banco ROM
    - 0x3000-0x3FFF: bit 8 del banco ROM
    - 0x4000-0x5FFF: banco de RAM (4 bits)

    A diferencia de MBC1/MBC3, el banco 0 se puede mapear en 0x4000-0x7FFF.
    """

    name = "MBC5"

    def __init__(self, rom: bytes, ram_size: int) -> None:
        super().__init__(rom, ram_size)
        self._bank_number: int = 1

    def write_control(self, address: int, value: int) -> None:
        if address < 0x2000:
            self.ram_enabled = (value & 0x0F) == RAM_ENABLE_VALUE
        elif address < 0x3000:
            self._bank_number = (self._bank_number & 0x100) | (value & 0xFF)
        elif address < 0x4000:
            self._bank_number = ((value & 0x01) << 8) | (self._bank_number & 0xFF)
        elif address < 0x6000:
            self.ram_bank = value & 0x0F
        self.rom_bank = self._bank_number % self.rom_banks


# Código de tipo de cartucho (cabecera 0x0147) -> clase de MBC
MBC_REGISTRY: dict[int, type[MBC]] = {
    0x00: NoMBC,
    0x08: NoMBC,
    0x09: NoMBC,
    0x01: MBC1,
    0x02: MBC1,
    0x03: MBC1,
    0x0F: MBC3,
    0x10: MBC3,
    0x11: MBC3,
    0x12: MBC3,
    0x13: MBC3,
    0x19: MBC5,
    0x1A: MBC5,
    0x1B: MBC5,
    0x1C: MBC5,
    0x1D: MBC5,
    0x1E: MBC5,
}
