"""
Controlador de Interrupciones

La Game Boy tiene cinco fuentes de interrupción. Cada una ocupa un bit en los
registros IE (0xFFFF, habilitadas) e IF (0xFF0F, solicitadas):

- Bit 0: V-Blank  -> vector 0x0040
- Bit 1: LCD STAT -> vector 0x0048
- Bit 2: Timer    -> vector 0x0050
- Bit 3: Serial   -> vector 0x0058
- Bit 4: Joypad   -> vector 0x0060

Cuando varias están pendientes a la vez gana el bit más bajo (V-Blank tiene
la máxima prioridad).

IME (Interrupt Master Enable) es un flag interno de la CPU, no mapeado en
memoria. DI lo desactiva de inmediato; EI lo activa con retraso: la
instrucción siguiente a EI todavía se ejecuta con IME desactivado. RETI lo
activa de inmediato.

Los 3 bits altos de IF no existen en el hardware y se leen siempre a 1.

Fuente: Pan Docs - Interrupts
"""

from __future__ import annotations

import logging
from enum import IntFlag

logger = logging.getLogger(__name__)

# Bits no implementados de IF (se leen como 1)
IF_UNUSED_BITS = 0xE0
INTERRUPT_MASK = 0x1F


class Interrupt(IntFlag):
    VBLANK = 0x01
    STAT = 0x02
    TIMER = 0x04
    SERIAL = 0x08
    JOYPAD = 0x10

    @property
    def vector(self) -> int:
        """Dirección a la que salta la CPU al atender esta interrupción."""
        return 0x0040 + 8 * (self.value.bit_length() - 1)


# Orden de prioridad (bit más bajo primero)
PRIORITY_ORDER = (
    Interrupt.VBLANK,
    Interrupt.STAT,
    Interrupt.TIMER,
    Interrupt.SERIAL,
    Interrupt.JOYPAD,
)


class InterruptController:
    """
    Estado de interrupciones: máscaras IE/IF e IME (con su activación diferida).

    Timer, PPU, Joypad y Serial llaman a ``request``; la CPU consulta
    ``pending_interrupt`` antes de cada fetch y llama a ``acknowledge`` al
    atender una.
    """

    def __init__(self) -> None:
        self.enabled: int = 0  # IE
        self.requested: int = 0  # IF
        self.ime: bool = False
        self.ime_pending: bool = False

    # ========== Máscaras ==========

    def request(self, source: Interrupt) -> None:
        self.requested |= int(source)

    def acknowledge(self, source: Interrupt) -> None:
        self.requested &= ~int(source) & INTERRUPT_MASK

    def set_enabled_mask(self, mask: int) -> None:
        # IE guarda los 8 bits aunque sólo 5 tengan efecto
        self.enabled = mask & 0xFF

    def set_requested_mask(self, mask: int) -> None:
        self.requested = mask & INTERRUPT_MASK

    def read_if(self) -> int:
        return self.requested | IF_UNUSED_BITS

    def has_pending(self) -> bool:
        """True si hay alguna interrupción habilitada y solicitada (ignora IME)."""
        return (self.enabled & self.requested & INTERRUPT_MASK) != 0

    def pending_interrupt(self) -> Interrupt | None:
        """
        Devuelve la interrupción de mayor prioridad que está habilitada y
        solicitada, o None. No tiene en cuenta IME.
        """
        active = self.enabled & self.requested & INTERRUPT_MASK
        for source in PRIORITY_ORDER:
            if active & source:
                return source
        return None

    # ========== IME ==========

    def enable_master(self) -> None:
        """Activa IME de inmediato (RETI)."""
        self.ime = True
        self.ime_pending = False

    def schedule_enable(self) -> None:
        """EI: IME se activará tras la siguiente instrucción."""
        self.ime_pending = True

    def disable_master(self) -> None:
        """DI: desactiva IME y cancela un EI pendiente."""
        self.ime = False
        self.ime_pending = False

    def commit_pending_enable(self) -> None:
        if self.ime_pending:
            self.ime = True
            self.ime_pending = False
            logger.debug("IME activado (EI diferido)")
