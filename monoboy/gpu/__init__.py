"""
GPU - Pixel Processing Unit

- PPU: máquina de estados de scanlines y composición del framebuffer
- renderer: ventana de Pygame (se importa aparte, sólo la usa la presentación)
"""

from .ppu import PPU, Frame, PPUMode, decode_tile_line

__all__ = ["PPU", "PPUMode", "Frame", "decode_tile_line"]
