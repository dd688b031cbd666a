"""
Cartridge (Cartucho) - Validación de la cabecera y acceso a ROM/RAM

Cada ROM de Game Boy lleva una cabecera en 0x0100-0x014F:
- Título (0x0134 - 0x0143)
- Tipo de Cartucho / MBC (0x0147)
- Tamaño de ROM (0x0148): 32KB << código
- Tamaño de RAM (0x0149)
- Header checksum (0x014D): x = x - byte - 1 sobre 0x0134-0x014C
- Global checksum (0x014E-0x014F): suma de todos los bytes salvo esos dos

La Boot ROM real se niega a arrancar si el header checksum no coincide, así
que un cartucho con checksum incorrecto se rechaza al cargar. El global
checksum no lo comprueba ningún hardware: se calcula y se registra en el log.

Fuente: Pan Docs - The Cartridge Header
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import MalformedCartridge
from .mbc import MBC, MBC_REGISTRY, RAM_BANK_SIZE, ROM_BANK_SIZE

logger = logging.getLogger(__name__)

MIN_ROM_SIZE = 0x8000

TITLE_START = 0x0134
TITLE_END = 0x0143
CARTRIDGE_TYPE = 0x0147
ROM_SIZE_CODE = 0x0148
RAM_SIZE_CODE = 0x0149
HEADER_CHECKSUM = 0x014D
GLOBAL_CHECKSUM = 0x014E

# Código de tamaño de RAM (0x0149) -> KB
RAM_SIZES_KB = {0x00: 0, 0x01: 2, 0x02: 8, 0x03: 32, 0x04: 128, 0x05: 64}

CARTRIDGE_TYPE_NAMES = {
    0x00: "ROM ONLY",
    0x01: "MBC1",
    0x02: "MBC1+RAM",
    0x03: "MBC1+RAM+BATTERY",
    0x05: "MBC2",
    0x06: "MBC2+BATTERY",
    0x08: "ROM+RAM",
    0x09: "ROM+RAM+BATTERY",
    0x0B: "MMM01",
    0x0C: "MMM01+RAM",
    0x0D: "MMM01+RAM+BATTERY",
    0x0F: "MBC3+TIMER+BATTERY",
    0x10: "MBC3+TIMER+RAM+BATTERY",
    0x11: "MBC3",
    0x12: "MBC3+RAM",
    0x13: "MBC3+RAM+BATTERY",
    0x19: "MBC5",
    0x1A: "MBC5+RAM",
    0x1B: "MBC5+RAM+BATTERY",
    0x1C: "MBC5+RUMBLE",
    0x1D: "MBC5+RUMBLE+RAM",
    0x1E: "MBC5+RUMBLE+RAM+BATTERY",
    0x20: "MBC6",
    0x22: "MBC7+SENSOR+RUMBLE+RAM+BATTERY",
    0xFC: "POCKET CAMERA",
    0xFD: "BANDAI TAMA5",
    0xFE: "HuC3",
    0xFF: "HuC1+RAM+BATTERY",
}


def header_checksum(rom: bytes) -> int:
    """Checksum de cabecera tal y como lo calcula la Boot ROM."""
    x = 0
    for byte in rom[TITLE_START:HEADER_CHECKSUM]:
        x = (x - byte - 1) & 0xFF
    return x


def global_checksum(rom: bytes) -> int:
    return (sum(rom) - rom[GLOBAL_CHECKSUM] - rom[GLOBAL_CHECKSUM + 1]) & 0xFFFF


class Cartridge:
    """
    Cartucho validado con su MBC.

    Args:
        rom: Contenido completo de la ROM

    Raises:
        MalformedCartridge: ROM truncada, checksum de cabecera incorrecto o
            tipo de MBC no soportado
    """

    def __init__(self, rom: bytes) -> None:
        rom = bytes(rom)
        if len(rom) < MIN_ROM_SIZE:
            raise MalformedCartridge(
                f"ROM demasiado pequeña: {len(rom)} bytes (mínimo {MIN_ROM_SIZE})"
            )

        expected = rom[HEADER_CHECKSUM]
        computed = header_checksum(rom)
        if computed != expected:
            raise MalformedCartridge(
                f"Header checksum incorrecto: cabecera=0x{expected:02X}, calculado=0x{computed:02X}"
            )

        self.cartridge_type = rom[CARTRIDGE_TYPE]
        mbc_class = MBC_REGISTRY.get(self.cartridge_type)
        if mbc_class is None:
            name = CARTRIDGE_TYPE_NAMES.get(self.cartridge_type, "desconocido")
            raise MalformedCartridge(
                f"Tipo de cartucho no soportado: 0x{self.cartridge_type:02X} ({name})"
            )

        rom_code = rom[ROM_SIZE_CODE]
        if rom_code > 0x08:
            raise MalformedCartridge(f"Código de tamaño de ROM inválido: 0x{rom_code:02X}")
        declared_size = MIN_ROM_SIZE << rom_code
        if len(rom) < declared_size:
            raise MalformedCartridge(
                f"ROM truncada: la cabecera declara {declared_size} bytes, hay {len(rom)}"
            )

        ram_code = rom[RAM_SIZE_CODE]
        if ram_code not in RAM_SIZES_KB:
            raise MalformedCartridge(f"Código de tamaño de RAM inválido: 0x{ram_code:02X}")

        self.rom = rom
        self.title = rom[TITLE_START:TITLE_END + 1].split(b"\x00", 1)[0].decode("ascii", "replace")
        self.rom_size_kb = declared_size // 1024
        self.ram_size_kb = RAM_SIZES_KB[ram_code]
        self.mbc: MBC = mbc_class(rom, self.ram_size_kb * 1024)

        self.stored_global_checksum = (rom[GLOBAL_CHECKSUM] << 8) | rom[GLOBAL_CHECKSUM + 1]
        if global_checksum(rom) != self.stored_global_checksum:
            logger.debug(
                f"Global checksum no coincide (0x{self.stored_global_checksum:04X} != "
                f"0x{global_checksum(rom):04X}); el hardware lo ignora"
            )

        logger.info(
            f"Cartucho: '{self.title}' tipo={self.type_name} "
            f"ROM={self.rom_size_kb}KB RAM={self.ram_size_kb}KB"
        )

    @classmethod
    def from_path(cls, rom_path: str | Path) -> Cartridge:
        """
        Lee la ROM desde disco.

        Raises:
            FileNotFoundError: Si el archivo no existe
            MalformedCartridge: Si la ROM no es válida
        """
        return cls(Path(rom_path).read_bytes())

    @property
    def type_name(self) -> str:
        return CARTRIDGE_TYPE_NAMES.get(self.cartridge_type, f"0x{self.cartridge_type:02X}")

    def get_header_info(self) -> dict[str, str | int]:
        """
        Información de la cabecera.

        Returns:
            Diccionario con 'title', 'cartridge_type', 'type_name',
            'rom_size' (KB), 'rom_banks', 'ram_size' (KB), 'ram_banks',
            'header_checksum' y 'global_checksum' (el valor guardado)
        """
        return {
            "title": self.title,
            "cartridge_type": f"0x{self.cartridge_type:02X}",
            "type_name": self.type_name,
            "rom_size": self.rom_size_kb,
            "rom_banks": self.rom_size_kb * 1024 // ROM_BANK_SIZE,
            "ram_size": self.ram_size_kb,
            "ram_banks": self.ram_size_kb * 1024 // RAM_BANK_SIZE,
            "header_checksum": self.rom[HEADER_CHECKSUM],
            "global_checksum": self.stored_global_checksum,
        }

    # ========== Acceso desde la MMU ==========

    def read_rom(self, address: int) -> int:
        return self.mbc.read_rom(address)

    def write_rom(self, address: int, value: int) -> None:
        """Escritura en 0x0000-0x7FFF: registro de control del MBC."""
        self.mbc.write_control(address, value & 0xFF)

    def read_ram(self, address: int) -> int:
        return self.mbc.read_ram(address)

    def write_ram(self, address: int, value: int) -> None:
        self.mbc.write_ram(address, value)
