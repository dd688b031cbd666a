"""
Configuración global de pytest para Monoboy

- Configura pygame en modo headless (sin ventanas)
- Añade la raíz del proyecto al sys.path para importar ``monoboy`` sin instalar
"""

import os
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Evita que los tests abran ventanas o impriman el banner de pygame
os.environ["SDL_VIDEODRIVER"] = "dummy"
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"
