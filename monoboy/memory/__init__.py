"""
Módulo de memoria

- MMU: bus de 16 bits, dueño de todo el almacenamiento
- Cartridge: validación de cabecera y acceso a ROM/RAM
- mbc: variantes de Memory Bank Controller
"""

from .cartridge import Cartridge
from .mmu import MMU

__all__ = ["MMU", "Cartridge"]
