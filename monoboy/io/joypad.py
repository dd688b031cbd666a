"""
Joypad - Registro P1 (0xFF00)

El Joypad usa lógica "Active Low": un bit a 0 indica botón pulsado.

- ESCRITURA: bits 4-5 seleccionan el grupo a leer
  - Bit 4 = 0: direcciones (Right, Left, Up, Down)
  - Bit 5 = 0: botones (A, B, Select, Start)
- LECTURA: bits 0-3 con el estado del grupo (o grupos) seleccionados.
  Si ambos grupos están seleccionados, los bits se combinan con AND.
  Los bits 6-7 no existen y se leen a 1.

Cuando un botón pasa de soltado a pulsado se solicita la interrupción Joypad.

Fuente: Pan Docs - Joypad Input
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .interrupts import Interrupt

if TYPE_CHECKING:
    from .interrupts import InterruptController

logger = logging.getLogger(__name__)

P1_SELECT_DIRECTIONS = 0x10
P1_SELECT_BUTTONS = 0x20
P1_SELECT_MASK = P1_SELECT_DIRECTIONS | P1_SELECT_BUTTONS
P1_UNUSED_BITS = 0xC0


class Button(Enum):
    """Botones de la DMG. El valor es (grupo, bit dentro de P1)."""

    RIGHT = (P1_SELECT_DIRECTIONS, 0x01)
    LEFT = (P1_SELECT_DIRECTIONS, 0x02)
    UP = (P1_SELECT_DIRECTIONS, 0x04)
    DOWN = (P1_SELECT_DIRECTIONS, 0x08)
    A = (P1_SELECT_BUTTONS, 0x01)
    B = (P1_SELECT_BUTTONS, 0x02)
    SELECT = (P1_SELECT_BUTTONS, 0x04)
    START = (P1_SELECT_BUTTONS, 0x08)


class Joypad:
    """Estado de los ocho botones y selector del registro P1."""

    def __init__(self) -> None:
        self._pressed: set[Button] = set()
        # Bits 4-5 a 1: ningún grupo seleccionado
        self._selector: int = P1_SELECT_MASK

    def write(self, value: int) -> None:
        """Sólo los bits 4-5 son escribibles."""
        self._selector = value & P1_SELECT_MASK

    def read(self) -> int:
        low = 0x0F
        for button in self._pressed:
            group, bit = button.value
            if not self._selector & group:
                low &= ~bit
        return P1_UNUSED_BITS | self._selector | low

    def press(self, button: Button, interrupts: InterruptController) -> None:
        """
        Marca un botón como pulsado y solicita la interrupción Joypad si
        antes estaba soltado.
        """
        if button in self._pressed:
            return
        self._pressed.add(button)
        interrupts.request(Interrupt.JOYPAD)
        logger.debug(f"Joypad: {button.name} pulsado")

    def release(self, button: Button) -> None:
        self._pressed.discard(button)
        logger.debug(f"Joypad: {button.name} soltado")

    def is_pressed(self, button: Button) -> bool:
        return button in self._pressed
