"""
Puerto de registros de audio (0xFF10-0xFF3F)

El núcleo no sintetiza sonido. Se limita a guardar los registros del APU
(para que la CPU los lea de vuelta) y a reenviar cada escritura, con su marca
de tiempo en T-Cycles, al backend de audio externo.

Las lecturas aplican las máscaras de bits no legibles del hardware, de forma
que el software ve lo mismo que en una DMG real.

Fuente: Pan Docs - Audio Registers
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

AUDIO_START = 0xFF10
AUDIO_END = 0xFF3F
WAVE_RAM_START = 0xFF30

# Bits que se leen siempre a 1 (registros 0xFF10-0xFF2F)
_READ_MASKS = (
    0x80, 0x3F, 0x00, 0xFF, 0xBF,  # NR10-NR14
    0xFF, 0x3F, 0x00, 0xFF, 0xBF,  # (hueco), NR21-NR24
    0x7F, 0xFF, 0x9F, 0xFF, 0xBF,  # NR30-NR34
    0xFF, 0xFF, 0x00, 0x00, 0xBF,  # (hueco), NR41-NR44
    0x00, 0x00, 0x70,              # NR50-NR52
    0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF,  # 0xFF27-0xFF2F
)


class AudioWrite(NamedTuple):
    address: int
    value: int
    timestamp: int  # T-Cycles desde el arranque


class AudioPort:
    """
    Args:
        sink: Callable que recibe cada ``AudioWrite`` (o None)
    """

    def __init__(self, sink: Callable[[AudioWrite], None] | None = None) -> None:
        self.sink = sink
        self._registers = bytearray(AUDIO_END - AUDIO_START + 1)

    def read(self, address: int) -> int:
        offset = address - AUDIO_START
        value = self._registers[offset]
        if address < WAVE_RAM_START:
            value |= _READ_MASKS[offset]
        return value

    def write(self, address: int, value: int, timestamp: int) -> None:
        self._registers[address - AUDIO_START] = value & 0xFF
        if self.sink is not None:
            self.sink(AudioWrite(address, value & 0xFF, timestamp))
