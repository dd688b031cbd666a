"""
Módulo CPU - Procesador SM83 y sus tablas de decodificación
"""

from .core import CPU
from .opcodes import CB_TABLE, PRIMARY_TABLE, Instruction, Op
from .registers import Registers

__all__ = ["CPU", "Registers", "Instruction", "Op", "PRIMARY_TABLE", "CB_TABLE"]
