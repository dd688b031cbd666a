"""
Módulo de Entrada/Salida (I/O)

Periféricos con registros mapeados en 0xFF00-0xFF7F:
- InterruptController: IE, IF e IME
- Timer: DIV, TIMA, TMA, TAC
- Joypad: P1
- Serial: SB, SC
- AudioPort: registros del APU (sólo almacenamiento y reenvío)
"""

from .audio import AudioPort, AudioWrite
from .interrupts import Interrupt, InterruptController
from .joypad import Button, Joypad
from .serial import Serial
from .timer import Timer

__all__ = [
    "AudioPort",
    "AudioWrite",
    "Button",
    "Interrupt",
    "InterruptController",
    "Joypad",
    "Serial",
    "Timer",
]
