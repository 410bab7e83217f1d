# fog_generator/runtime/__init__.py

# This file makes the 'runtime' directory a Python package.
# It also defines the public API a game loop imports.

from .fog_system import FogSystem, Tile, resolve_settings
from .camera import PerspectiveCamera

__all__ = ["FogSystem", "Tile", "resolve_settings", "PerspectiveCamera"]
