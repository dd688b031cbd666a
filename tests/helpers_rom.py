"""
Helpers para construir ROMs sintéticas con una cabecera válida.
"""

HEADER_CHECKSUM_ADDR = 0x014D


def fix_header_checksum(rom: bytearray) -> bytearray:
    x = 0
    for byte in rom[0x0134:HEADER_CHECKSUM_ADDR]:
        x = (x - byte - 1) & 0xFF
    rom[HEADER_CHECKSUM_ADDR] = x
    return rom


def make_rom(
    program: list[int] | bytes = b"",
    cart_type: int = 0x00,
    rom_size_code: int = 0x00,
    ram_size_code: int = 0x00,
    title: bytes = b"TEST",
    entry: int = 0x0100,
    fill_banks: bool = False,
) -> bytes:
    """
    Crea una ROM de (32KB << rom_size_code) con el programa en ``entry``.

    Args:
        fill_banks: Si es True, cada banco de 16KB se rellena con su número
            (salvo la cabecera y el programa del banco 0)
    """
    size = 0x8000 << rom_size_code
    rom = bytearray(size)
    if fill_banks:
        for bank in range(size // 0x4000):
            start = bank * 0x4000
            rom[start:start + 0x4000] = bytes([bank & 0xFF]) * 0x4000
        rom[0x0100:0x0150] = bytes(0x50)
    rom[entry:entry + len(program)] = bytes(program)
    rom[0x0134:0x0134 + len(title)] = title
    rom[0x0147] = cart_type
    rom[0x0148] = rom_size_code
    rom[0x0149] = ram_size_code
    return bytes(fix_header_checksum(rom))
