"""
Puerto Serie (Link Cable)

- SB (0xFF01): byte a enviar/recibido
- SC (0xFF02): bit 7 = transferencia en curso, bit 0 = reloj interno

Sin cable conectado, una transferencia con reloj interno (SC = 0x81) "envía"
SB y recibe 0xFF. La transferencia se completa de inmediato: se limpia el
bit 7 de SC y se solicita la interrupción Serial.

Muchas ROMs de test (p. ej. las de Blargg) imprimen su resultado por aquí, por
eso el byte enviado se entrega a un callable de salida opcional.

Fuente: Pan Docs - Serial Data Transfer (Link Cable)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .interrupts import Interrupt

if TYPE_CHECKING:
    from .interrupts import InterruptController

logger = logging.getLogger(__name__)

SC_TRANSFER_START = 0x80
SC_INTERNAL_CLOCK = 0x01
SC_UNUSED_BITS = 0x7E


class Serial:
    """
    Args:
        output: Callable que recibe cada byte enviado (o None para descartarlo)
    """

    def __init__(self, output: Callable[[int], None] | None = None) -> None:
        self.output = output
        self._sb: int = 0
        self._sc: int = 0

    def read_sb(self) -> int:
        return self._sb

    def write_sb(self, value: int) -> None:
        self._sb = value & 0xFF

    def read_sc(self) -> int:
        return self._sc | SC_UNUSED_BITS

    def write_sc(self, value: int, interrupts: InterruptController) -> None:
        self._sc = value & (SC_TRANSFER_START | SC_INTERNAL_CLOCK)
        if self._sc == SC_TRANSFER_START | SC_INTERNAL_CLOCK:
            sent = self._sb
            logger.debug(f"Serial: byte enviado 0x{sent:02X}")
            if self.output is not None:
                self.output(sent)
            # Sin dispositivo al otro lado se reciben unos
            self._sb = 0xFF
            self._sc &= ~SC_TRANSFER_START
            interrupts.request(Interrupt.SERIAL)
