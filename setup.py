"""
Setup script de Monoboy.

Uso:
    pip install -e .
    pip install -e ".[test]"
"""

from setuptools import find_packages, setup


setup(
    name="monoboy",
    version="0.1.0",
    description="Emulador de Game Boy (DMG): CPU SM83, MBCs, PPU y Timer",
    python_requires=">=3.10",
    packages=find_packages(include=["monoboy", "monoboy.*"]),
    py_modules=["main"],
    install_requires=[
        "numpy",
        "pygame-ce",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "monoboy=main:main",
        ],
    },
    zip_safe=False,
)
