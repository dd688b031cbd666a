"""
Errores del núcleo de emulación.

Taxonomía de condiciones fatales que el núcleo puede reportar:
- MalformedCartridge: la ROM no supera la validación de cabecera (tamaño,
  checksum o tipo de MBC no soportado). Se lanza al cargar, antes de ejecutar.
- MalformedBootRom: la Boot ROM no tiene los 256 bytes que mapea el hardware.
- UnimplementedOpcode: se decodificó un byte sin instrucción asociada.

Las clases heredan también de las excepciones estándar que la CLI ya captura
(ValueError para errores de carga, NotImplementedError para opcodes), de forma
que un llamador que no conozca este módulo las sigue tratando correctamente.

Las selecciones de banco fuera de rango y los accesos a VRAM/OAM bloqueadas
NO son errores: se resuelven en silencio, igual que en el hardware real.
"""

from __future__ import annotations


class EmulatorError(Exception):
    """Base de todos los errores propios del emulador."""


class MalformedCartridge(EmulatorError, ValueError):
    """La cabecera o el tamaño de la ROM no son válidos."""


class MalformedBootRom(EmulatorError, ValueError):
    """La Boot ROM no tiene el tamaño esperado (256 bytes)."""


class UnimplementedOpcode(EmulatorError, NotImplementedError):
    """
    Se intentó ejecutar un byte que no corresponde a ninguna instrucción.

    Args:
        pc: Dirección donde se leyó el opcode
        opcode: Byte decodificado
    """

    def __init__(self, pc: int, opcode: int) -> None:
        self.pc = pc
        self.opcode = opcode
        super().__init__(f"Opcode 0x{opcode:02X} no implementado en PC=0x{pc:04X}")
