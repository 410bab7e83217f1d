# fog_generator/color_maps.py

"""
================================================================================
SHARED COLOR MAPPING UTILITIES
================================================================================
This module contains the debug palettes for cell classes and terrain types and
the functions that turn [z, x] data grids into RGB color arrays.

It is designed to be a pure, stateless utility with no dependencies on Pygame,
allowing it to be used by both the debug viewer and the offline baker script.
Returned color arrays are (width, height, 3), the layout
`pygame.surfarray.make_surface` expects.
================================================================================
"""
import numpy as np

from .classifier import CellClass
from .terrain import TerrainType

# --- Cell Class Colors ---
COLOR_MAP_CELL_CLASS = {
    CellClass.FULL_LOCKED: (0, 0, 0),
    CellClass.ADJACENT_UNLOCKED: (0, 200, 0),
    CellClass.PARTIAL_UNLOCKED: (220, 30, 30),
    CellClass.FULL_UNLOCKED: (255, 255, 255),
}

# --- Terrain Type Colors ---
COLOR_MAP_TERRAIN = {
    TerrainType.PLAIN: (124, 180, 90),
    TerrainType.HILL: (150, 130, 80),
    TerrainType.MOUNTAIN: (112, 128, 144),
    TerrainType.LAKE: (26, 102, 255),
    TerrainType.FOREST: (0, 100, 0),
    TerrainType.UNLOCKED: (240, 230, 140),
}

COLOR_HEIGHT_LOW = (20, 20, 40)
COLOR_HEIGHT_HIGH = (235, 235, 220)

# --- Color Lookup Table (LUT) Generation ---
def create_cell_class_lut() -> np.ndarray:
    """A LUT where the index is the `CellClass` value and the value is the RGB color."""
    return np.array([COLOR_MAP_CELL_CLASS[c] for c in CellClass], dtype=np.uint8)

def create_terrain_lut() -> np.ndarray:
    """A LUT where the index is the `TerrainType` value and the value is the RGB color."""
    return np.array([COLOR_MAP_TERRAIN[t] for t in TerrainType], dtype=np.uint8)

def create_height_lut() -> np.ndarray:
    """A 256-entry gradient from low to high ground."""
    t = np.linspace(0.0, 1.0, 256)[..., np.newaxis]
    colors = (1 - t) * np.array(COLOR_HEIGHT_LOW) + t * np.array(COLOR_HEIGHT_HIGH)
    return colors.astype(np.uint8)

# --- Color Array Generation Functions ---
def get_class_color_array(cell_classes: np.ndarray, class_lut: np.ndarray) -> np.ndarray:
    """Converts a [z, x] cell-class grid into a (width, height, 3) RGB array."""
    colors = class_lut[cell_classes]
    return np.transpose(colors, (1, 0, 2))

def get_terrain_color_array(terrain_types: np.ndarray, terrain_lut: np.ndarray) -> np.ndarray:
    colors = terrain_lut[terrain_types]
    return np.transpose(colors, (1, 0, 2))

def get_height_color_array(heights: np.ndarray, height_lut: np.ndarray) -> np.ndarray:
    """Normalises heights to the grid's own range before the LUT lookup."""
    low, high = float(heights.min()), float(heights.max())
    span = high - low
    normalized = (heights - low) / span if span > 0 else np.zeros_like(heights)
    indices = (normalized * 255).astype(np.uint8)
    colors = height_lut[indices]
    return np.transpose(colors, (1, 0, 2))
