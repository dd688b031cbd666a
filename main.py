#!/usr/bin/env python3
"""
Monoboy - Emulador de Game Boy (DMG)
Punto de entrada principal del emulador
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path

from monoboy import Monoboy

# ERROR: sólo errores fatales por defecto
logging.basicConfig(
    level=logging.ERROR,
    format="%(message)s",
    force=True,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monoboy - Emulador de Game Boy (DMG)")
    parser.add_argument("rom", type=Path, help="Ruta al archivo ROM (.gb)")
    parser.add_argument(
        "--boot-rom",
        type=Path,
        default=None,
        help="Boot ROM de DMG (256 bytes). Sin ella se arranca en el estado post-boot",
    )
    parser.add_argument(
        "--scale",
        type=int,
        default=3,
        help="Factor de escala de la ventana (por defecto 3)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Activar logging DEBUG",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Activar logging INFO (cabecera del cartucho, Boot ROM, estado post-boot)",
    )
    return parser


def main() -> None:
    """Función principal del emulador"""
    args = build_parser().parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    def write_serial(byte: int) -> None:
        sys.stdout.write(chr(byte))
        sys.stdout.flush()

    try:
        emulator = Monoboy.from_files(args.rom, args.boot_rom, serial_out=write_serial)
    except (OSError, ValueError) as e:
        print(f"Error al cargar ROM: {e}", file=sys.stderr)
        if args.debug or args.verbose:
            traceback.print_exc()
        sys.exit(1)

    header = emulator.cartridge.get_header_info()
    print(f"Cartucho: {header['title']} ({header['type_name']}, "
          f"ROM {header['rom_size']} KB, RAM {header['ram_size']} KB)")

    try:
        emulator.run(scale=args.scale)
    except NotImplementedError as e:
        print(f"Error de ejecución: {e}", file=sys.stderr)
        pc, mnemonic = emulator.current_instruction()
        print(f"Estado: {emulator.registers} | 0x{pc:04X}: {mnemonic}", file=sys.stderr)
        if args.debug or args.verbose:
            traceback.print_exc()
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
