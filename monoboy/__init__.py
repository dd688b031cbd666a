"""
Monoboy - Emulador de Game Boy (DMG)

Núcleo de emulación: CPU SM83, bus de memoria con MBCs, PPU, Timer e
interrupciones, sincronizados por un reloj de sistema determinista.
"""

from .emulator import Monoboy
from .errors import EmulatorError, MalformedBootRom, MalformedCartridge, UnimplementedOpcode
from .gpu.ppu import Frame
from .io.joypad import Button

__version__ = "0.1.0"

__all__ = [
    "Monoboy",
    "Button",
    "Frame",
    "EmulatorError",
    "MalformedBootRom",
    "MalformedCartridge",
    "UnimplementedOpcode",
]
