"""
Registros de la CPU SM83 (DMG)

La CPU tiene ocho registros de 8 bits (A, F, B, C, D, E, H, L) que se pueden
agrupar en cuatro pares de 16 bits (AF, BC, DE, HL), además del Program
Counter (PC) y el Stack Pointer (SP), ambos de 16 bits.

El registro F guarda los flags en su nibble alto:
- Bit 7 (Z): el resultado fue cero
- Bit 6 (N): la última operación fue una resta
- Bit 5 (H): acarreo del bit 3 al 4 (o del 11 al 12 en sumas de 16 bits)
- Bit 4 (C): acarreo del bit 7 (o préstamo en restas)

El nibble bajo de F es siempre 0, incluso tras POP AF.

Fuente: Pan Docs - CPU Registers and Flags
"""

from __future__ import annotations

from typing import NamedTuple

FLAG_Z = 0x80  # Zero (bit 7)
FLAG_N = 0x40  # Subtract (bit 6)
FLAG_H = 0x20  # Half Carry (bit 5)
FLAG_C = 0x10  # Carry (bit 4)

REGISTER_F_MASK = 0xF0


class RegisterSnapshot(NamedTuple):
    """Copia inmutable del estado de los registros (para el depurador)."""

    a: int
    f: int
    b: int
    c: int
    d: int
    e: int
    h: int
    l: int
    sp: int
    pc: int

    def __str__(self) -> str:
        flags = "".join(
            name if self.f & mask else "-"
            for name, mask in (("Z", FLAG_Z), ("N", FLAG_N), ("H", FLAG_H), ("C", FLAG_C))
        )
        return (
            f"AF={self.a:02X}{self.f:02X} BC={self.b:02X}{self.c:02X} "
            f"DE={self.d:02X}{self.e:02X} HL={self.h:02X}{self.l:02X} "
            f"SP={self.sp:04X} PC={self.pc:04X} [{flags}]"
        )


class Registers:
    """
    Banco de registros de la CPU.

    Los registros de 8 bits son atributos públicos (``a``, ``b``...). Los pares
    de 16 bits se leen y escriben con ``get_xx``/``set_xx``, que aplican el
    wrap-around y la máscara de F.
    """

    def __init__(self) -> None:
        self.a: int = 0
        self.f: int = 0
        self.b: int = 0
        self.c: int = 0
        self.d: int = 0
        self.e: int = 0
        self.h: int = 0
        self.l: int = 0
        self.sp: int = 0
        self.pc: int = 0

    # ========== Pares de 16 bits ==========

    def get_af(self) -> int:
        return (self.a << 8) | self.f

    def set_af(self, value: int) -> None:
        """Establece AF. Los 4 bits bajos de F se fuerzan a 0."""
        self.a = (value >> 8) & 0xFF
        self.f = value & REGISTER_F_MASK

    def get_bc(self) -> int:
        return (self.b << 8) | self.c

    def set_bc(self, value: int) -> None:
        self.b = (value >> 8) & 0xFF
        self.c = value & 0xFF

    def get_de(self) -> int:
        return (self.d << 8) | self.e

    def set_de(self, value: int) -> None:
        self.d = (value >> 8) & 0xFF
        self.e = value & 0xFF

    def get_hl(self) -> int:
        return (self.h << 8) | self.l

    def set_hl(self, value: int) -> None:
        self.h = (value >> 8) & 0xFF
        self.l = value & 0xFF

    def set_f(self, value: int) -> None:
        self.f = value & REGISTER_F_MASK

    # ========== Flags ==========

    def check_flag(self, flag: int) -> bool:
        return (self.f & flag) != 0

    def assign_flags(
        self,
        z: bool | None = None,
        n: bool | None = None,
        h: bool | None = None,
        c: bool | None = None,
    ) -> None:
        """
        Actualiza sólo los flags indicados.

        Un argumento a ``None`` deja el flag correspondiente intacto; así cada
        instrucción declara exactamente los flags que modifica.
        """
        f = self.f
        for value, mask in ((z, FLAG_Z), (n, FLAG_N), (h, FLAG_H), (c, FLAG_C)):
            if value is None:
                continue
            if value:
                f |= mask
            else:
                f &= ~mask
        self.f = f & REGISTER_F_MASK

    def snapshot(self) -> RegisterSnapshot:
        return RegisterSnapshot(
            self.a, self.f, self.b, self.c, self.d, self.e, self.h, self.l, self.sp, self.pc
        )

    def __str__(self) -> str:
        return str(self.snapshot())
