"""
Renderer - Presentación con Pygame

Consume los frames completos de la PPU (tonos 0-3 por píxel) y los dibuja en
una ventana escalada. La traducción tono -> RGB se hace vectorizada con NumPy
(indexando el array de la paleta con el array de tonos) y el resultado se
vuelca a la superficie con ``pygame.surfarray``.

También traduce los eventos de teclado a pulsaciones del Joypad:
- Direcciones: flechas
- A: Z o A
- B: X o S
- Start: Return
- Select: Shift derecho o Backspace
- Escape o cerrar la ventana: salir
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import pygame

from ..io.joypad import Button
from .ppu import SCREEN_HEIGHT, SCREEN_WIDTH

if TYPE_CHECKING:
    from ..emulator import Monoboy
    from .ppu import Frame

logger = logging.getLogger(__name__)

KEY_MAP: dict[int, Button] = {
    pygame.K_RIGHT: Button.RIGHT,
    pygame.K_LEFT: Button.LEFT,
    pygame.K_UP: Button.UP,
    pygame.K_DOWN: Button.DOWN,
    pygame.K_z: Button.A,
    pygame.K_a: Button.A,
    pygame.K_x: Button.B,
    pygame.K_s: Button.B,
    pygame.K_RETURN: Button.START,
    pygame.K_RSHIFT: Button.SELECT,
    pygame.K_BACKSPACE: Button.SELECT,
}


def frame_to_rgb(frame: Frame) -> np.ndarray:
    """
    Convierte un frame de tonos en un array RGB (144, 160, 3).
    """
    palette = np.asarray(frame.palette, dtype=np.uint8)
    return palette[frame.pixels]


class Renderer:
    """
    Ventana de Pygame.

    Args:
        scale: Factor de escala de la ventana (160x144 * scale)
        title: Título de la ventana
    """

    def __init__(self, scale: int = 3, title: str = "Monoboy") -> None:
        pygame.init()
        self.scale = scale
        self.screen = pygame.display.set_mode((SCREEN_WIDTH * scale, SCREEN_HEIGHT * scale))
        pygame.display.set_caption(title)
        self.surface = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT))
        self._clock = pygame.time.Clock()
        logger.info(f"Renderer inicializado ({SCREEN_WIDTH * scale}x{SCREEN_HEIGHT * scale})")

    def render_frame(self, frame: Frame) -> None:
        rgb = frame_to_rgb(frame)
        # surfarray espera (ancho, alto, canales)
        pygame.surfarray.blit_array(self.surface, np.swapaxes(rgb, 0, 1))
        scaled = pygame.transform.scale(self.surface, self.screen.get_size())
        self.screen.blit(scaled, (0, 0))
        pygame.display.flip()

    def handle_events(self, emulator: Monoboy) -> bool:
        """
        Procesa la cola de eventos.

        Returns:
            False si el usuario pidió salir
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    return False
                button = KEY_MAP.get(event.key)
                if button is not None:
                    emulator.press(button)
            elif event.type == pygame.KEYUP:
                button = KEY_MAP.get(event.key)
                if button is not None:
                    emulator.release(button)
        return True

    def tick(self, fps: int) -> None:
        """Limita la velocidad a ``fps`` frames por segundo."""
        self._clock.tick(fps)

    def quit(self) -> None:
        pygame.quit()
        logger.info("Renderer cerrado")
