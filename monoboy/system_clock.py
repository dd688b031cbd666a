"""
SystemClock: contrato de ciclos M->T y sincronización CPU -> Timer -> PPU.

- La CPU devuelve M-Cycles (Machine Cycles).
- El Timer y la PPU consumen T-Cycles (dots).
- La conversión M->T (factor 4) se hace en UN SOLO LUGAR: aquí.

Cada iteración ejecuta una instrucción de CPU y avanza Timer y PPU exactamente
los ciclos que ha consumido. Las interrupciones que soliciten quedan en el
controlador y la CPU las ve en su siguiente fetch. El orden es determinista:
para una misma ROM y misma secuencia de entrada el resultado es idéntico.

Fuente: Pan Docs - Timing
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .cpu.core import CPU
    from .memory.mmu import MMU


class SystemClock:
    """
    Reloj maestro: bucle CPU -> ciclos -> Timer/PPU.

    Args:
        cpu: CPU a ejecutar
        mmu: Bus compartido (dueño del Timer, la PPU y las interrupciones)
    """

    M_TO_T_FACTOR = 4

    def __init__(self, cpu: CPU, mmu: MMU) -> None:
        self._cpu = cpu
        self._mmu = mmu
        self._total_cycles = 0  # M-Cycles

    def tick_instruction(self) -> int:
        """
        Ejecuta una instrucción (o un ciclo de HALT, o el despacho de una
        interrupción) y sincroniza los subsistemas.

        Returns:
            M-Cycles consumidos
        """
        mmu = self._mmu
        m_cycles = self._cpu.step(mmu)
        t_cycles = m_cycles * self.M_TO_T_FACTOR

        mmu.timer.tick(t_cycles, mmu.interrupts)
        mmu.ppu.step(mmu, t_cycles)

        self._total_cycles += m_cycles
        mmu.timestamp = self._total_cycles * self.M_TO_T_FACTOR
        return m_cycles

    def get_total_cycles(self) -> int:
        """Total de M-Cycles desde el arranque."""
        return self._total_cycles

    def get_total_t_cycles(self) -> int:
        return self._total_cycles * self.M_TO_T_FACTOR
