"""
Timer - Sistema de Temporización de la Game Boy

Registros:
- DIV (0xFF04): byte alto de un contador interno de 16 bits que avanza con
  cada T-Cycle. Cualquier escritura lo pone a 0 entero.
- TIMA (0xFF05): contador programable.
- TMA (0xFF06): valor de recarga de TIMA tras un overflow.
- TAC (0xFF07): bit 2 = enable, bits 1-0 = frecuencia.

TIMA no tiene un divisor propio: incrementa en el flanco de bajada de la
señal (TAC.enable AND bit_de_DIV), donde el bit de DIV lo elige TAC:

    TAC 00 -> bit 9 (4096 Hz,   cada 1024 T-Cycles)
    TAC 01 -> bit 3 (262144 Hz, cada 16 T-Cycles)
    TAC 10 -> bit 5 (65536 Hz,  cada 64 T-Cycles)
    TAC 11 -> bit 7 (16384 Hz,  cada 256 T-Cycles)

Por eso escribir en DIV o cambiar TAC puede provocar un incremento "extra" si
la señal estaba a 1.

Overflow: cuando TIMA pasa de 0xFF a 0x00 se queda en 0x00 durante un
M-Cycle. En el M-Cycle siguiente se recarga con TMA y se solicita la
interrupción Timer. Escribir TIMA durante esa ventana cancela la recarga.

Fuente: Pan Docs - Timer and Divider Registers, Timer Obscure Behaviour
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .interrupts import Interrupt

if TYPE_CHECKING:
    from .interrupts import InterruptController

logger = logging.getLogger(__name__)

T_CYCLES_PER_M_CYCLE = 4

TAC_ENABLE_MASK = 0x04
TAC_FREQ_MASK = 0x03
TAC_UNUSED_BITS = 0xF8

# Bit del contador interno observado por cada selección de frecuencia
TAC_DIV_BITS = (9, 3, 5, 7)


class Timer:
    """
    DIV/TIMA/TMA/TAC con detección de flanco de bajada y recarga diferida.

    El Timer no guarda referencia a la MMU ni al controlador de interrupciones:
    ``tick`` recibe el controlador al que debe solicitar la interrupción.
    """

    def __init__(self) -> None:
        self._div_counter: int = 0
        self._tima: int = 0
        self._tma: int = 0
        self._tac: int = 0
        self._reload_pending: bool = False
        self._t_remainder: int = 0

    def tick(self, t_cycles: int, interrupts: InterruptController) -> None:
        """
        Avanza el Timer los T-Cycles indicados, en pasos de un M-Cycle.

        Args:
            t_cycles: T-Cycles transcurridos
            interrupts: Controlador donde solicitar la interrupción Timer
        """
        total = self._t_remainder + t_cycles
        steps, self._t_remainder = divmod(total, T_CYCLES_PER_M_CYCLE)
        for _ in range(steps):
            self._step_m_cycle(interrupts)

    def _step_m_cycle(self, interrupts: InterruptController) -> None:
        if self._reload_pending:
            self._reload_pending = False
            self._tima = self._tma
            interrupts.request(Interrupt.TIMER)

        before = self._signal()
        self._div_counter = (self._div_counter + T_CYCLES_PER_M_CYCLE) & 0xFFFF
        if before and not self._signal():
            self._increment_tima()

    def _signal(self) -> bool:
        if not self._tac & TAC_ENABLE_MASK:
            return False
        bit = TAC_DIV_BITS[self._tac & TAC_FREQ_MASK]
        return bool((self._div_counter >> bit) & 1)

    def _increment_tima(self) -> None:
        if self._tima == 0xFF:
            # TIMA lee 0 hasta que la recarga llegue en el próximo M-Cycle
            self._tima = 0
            self._reload_pending = True
        else:
            self._tima += 1

    # ========== Registros ==========

    def read_div(self) -> int:
        return (self._div_counter >> 8) & 0xFF

    def write_div(self, value: int) -> None:
        """Cualquier escritura en DIV resetea el contador interno completo."""
        before = self._signal()
        self._div_counter = 0
        if before:
            self._increment_tima()

    def read_tima(self) -> int:
        return self._tima

    def write_tima(self, value: int) -> None:
        if self._reload_pending:
            logger.debug("Escritura en TIMA cancela la recarga desde TMA")
            self._reload_pending = False
        self._tima = value & 0xFF

    def read_tma(self) -> int:
        return self._tma

    def write_tma(self, value: int) -> None:
        self._tma = value & 0xFF

    def read_tac(self) -> int:
        return self._tac | TAC_UNUSED_BITS

    def write_tac(self, value: int) -> None:
        before = self._signal()
        self._tac = value & 0x07
        if before and not self._signal():
            self._increment_tima()

    @property
    def div_counter(self) -> int:
        """Contador interno de 16 bits (sólo lectura, para depuración y tests)."""
        return self._div_counter

    def __repr__(self) -> str:
        return (
            f"Timer(DIV=0x{self.read_div():02X}, TIMA=0x{self._tima:02X}, "
            f"TMA=0x{self._tma:02X}, TAC=0x{self._tac:02X})"
        )
