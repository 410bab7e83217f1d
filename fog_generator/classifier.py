# fog_generator/classifier.py

"""
================================================================================
CELL CLASSIFIER
================================================================================
This module classifies the display-grid cells of a rectangular window (one
tile, or the whole map) by how many of their four corners are unlocked, and
refines that classification with a 4-neighbour propagation pass.

Data Contract:
---------------
- Inputs:
    - terrain: Any object satisfying `terrain.TerrainDataSource`.
    - cell_size: The display cell edge length (world units).
    - grid_count_x, grid_count_z: The number of display cells on the map.
    - policy: 'simple' or 'ringed' (see `config.CLASSIFICATION_POLICIES`).
- Outputs:
    - `CellWindow` objects holding NumPy arrays indexed [z, x].
- Side Effects: None. The terrain source is only read.
- Invariants:
    - Classification is a pure function of the corner data: classifying the
      same window twice yields identical arrays.
    - Neighbours outside the window are recomputed from the terrain source
      (a one-cell halo ring), never assumed locked. Cells outside the map are
      always FULL_LOCKED.
    - Unlocking a corner never lowers any cell's class.
================================================================================
"""

import logging
from enum import IntEnum
from typing import NamedTuple

import numpy as np
from scipy.ndimage import binary_dilation, generate_binary_structure

from . import config as DEFAULTS
from .terrain import TerrainDataSource

class CellClass(IntEnum):
    """Cell classes, ordered by degree of unlocked-ness. Higher wins ties."""
    FULL_LOCKED = 0
    ADJACENT_UNLOCKED = 1
    PARTIAL_UNLOCKED = 2
    FULL_UNLOCKED = 3

# 4-connected structuring element. Diagonal neighbours never propagate.
_CROSS = generate_binary_structure(2, 1)

class CellBlock(NamedTuple):
    local_x: int
    local_z: int
    global_x: int
    global_z: int
    cell_class: CellClass
    bottom_left_unlocked: bool
    bottom_right_unlocked: bool
    top_right_unlocked: bool
    top_left_unlocked: bool

def base_classes(corner_unlocked: np.ndarray) -> np.ndarray:
    """
    Corner-count classification for every cell of a corner grid.

    Args:
        corner_unlocked: bool array of shape (cells_z + 1, cells_x + 1).

    Returns:
        int8 array of shape (cells_z, cells_x) holding `CellClass` values.
    """
    count = unlocked_corner_counts(corner_unlocked)
    return np.select(
        [count == 4, count == 0],
        [CellClass.FULL_UNLOCKED, CellClass.FULL_LOCKED],
        default=CellClass.PARTIAL_UNLOCKED,
    ).astype(np.int8)

def unlocked_corner_counts(corner_unlocked: np.ndarray) -> np.ndarray:
    """Number of unlocked corners (0-4) per cell of a corner grid."""
    return (
        corner_unlocked[:-1, :-1].astype(np.int8)
        + corner_unlocked[:-1, 1:]
        + corner_unlocked[1:, 1:]
        + corner_unlocked[1:, :-1]
    )

class CellWindow:
    """
    The classified cells of one rectangular window.

    `halo_classes` is one cell larger than the window on every side. Its outer
    ring holds the corner-count class of the neighbouring cells (FULL_LOCKED
    outside the map) and its interior equals `classes`.
    """
    def __init__(self, start_x: int, start_z: int, count_x: int, count_z: int,
                 corner_unlocked: np.ndarray, corner_heights: np.ndarray,
                 classes: np.ndarray, halo_classes: np.ndarray):
        self.start_x = start_x
        self.start_z = start_z
        self.count_x = count_x
        self.count_z = count_z
        self.corner_unlocked = corner_unlocked
        self.corner_heights = corner_heights
        self.classes = classes
        self.halo_classes = halo_classes

    @property
    def is_empty(self) -> bool:
        return self.count_x <= 0 or self.count_z <= 0

    def cell(self, local_x: int, local_z: int) -> CellBlock:
        """Returns the full record of one cell in the window."""
        return CellBlock(
            local_x=local_x,
            local_z=local_z,
            global_x=self.start_x + local_x,
            global_z=self.start_z + local_z,
            cell_class=CellClass(int(self.classes[local_z, local_x])),
            bottom_left_unlocked=bool(self.corner_unlocked[local_z, local_x]),
            bottom_right_unlocked=bool(self.corner_unlocked[local_z, local_x + 1]),
            top_right_unlocked=bool(self.corner_unlocked[local_z + 1, local_x + 1]),
            top_left_unlocked=bool(self.corner_unlocked[local_z + 1, local_x]),
        )

    def class_counts(self) -> dict:
        counts = np.bincount(self.classes.ravel().astype(np.int64), minlength=len(CellClass))
        return {c.name: int(counts[c]) for c in CellClass}

class CellClassifier:
    """Classifies windows of display cells against a shared terrain source."""

    def __init__(self, terrain: TerrainDataSource, cell_size: float, grid_count_x: int, grid_count_z: int,
                 policy: str = DEFAULTS.DEFAULT_CLASSIFICATION_POLICY, logger: logging.Logger = None):
        self.terrain = terrain
        self.cell_size = cell_size
        self.grid_count_x = grid_count_x
        self.grid_count_z = grid_count_z
        self.policy = policy
        self.logger = logger or logging.getLogger(__name__)

    def _in_map(self, global_x: int, global_z: int) -> bool:
        return 0 <= global_x < self.grid_count_x and 0 <= global_z < self.grid_count_z

    def classify_cell(self, global_x: int, global_z: int) -> CellClass:
        """
        Corner-count class of a single cell, read straight from the terrain
        source. This is the rule used for neighbours outside a window.
        """
        if not self._in_map(global_x, global_z):
            return CellClass.FULL_LOCKED

        corners = (
            self.terrain.vertex_at_display(global_x, global_z, self.cell_size),
            self.terrain.vertex_at_display(global_x + 1, global_z, self.cell_size),
            self.terrain.vertex_at_display(global_x + 1, global_z + 1, self.cell_size),
            self.terrain.vertex_at_display(global_x, global_z + 1, self.cell_size),
        )
        unlocked = sum(1 for corner in corners if corner.is_revealed)
        if unlocked == 4:
            return CellClass.FULL_UNLOCKED
        if unlocked == 0:
            return CellClass.FULL_LOCKED
        return CellClass.PARTIAL_UNLOCKED

    def classify_window(self, start_x: int, start_z: int, count_x: int, count_z: int) -> CellWindow:
        """
        Classifies a window of cells in four passes:
          1. corner count (0 -> FULL_LOCKED, 4 -> FULL_UNLOCKED, else PARTIAL);
          2. ('ringed') cells touching a FULL_UNLOCKED cell become PARTIAL;
          3. ('ringed') FULL_LOCKED cells touching a PARTIAL cell become ADJACENT;
          4. neighbours outside the window come from a recomputed halo ring.
        """
        count_x = max(count_x, 0)
        count_z = max(count_z, 0)
        if count_x == 0 or count_z == 0:
            return CellWindow(
                start_x, start_z, count_x, count_z,
                corner_unlocked=np.zeros((count_z + 1, count_x + 1), dtype=bool),
                corner_heights=np.zeros((count_z + 1, count_x + 1)),
                classes=np.zeros((count_z, count_x), dtype=np.int8),
                halo_classes=np.zeros((count_z + 2, count_x + 2), dtype=np.int8),
            )

        # --- 1. Corner data for the window plus a one-cell halo ring ---
        heights, unlocked = self.terrain.sample_display_corners(
            start_x - 1, start_z - 1, count_x + 3, count_z + 3, self.cell_size
        )
        halo = base_classes(unlocked)

        # Cells beyond the map edge are always locked, whatever the data says.
        gx = np.arange(start_x - 1, start_x + count_x + 1)
        gz = np.arange(start_z - 1, start_z + count_z + 1)
        in_map = np.outer((gz >= 0) & (gz < self.grid_count_z), (gx >= 0) & (gx < self.grid_count_x))
        halo[~in_map] = CellClass.FULL_LOCKED

        # --- 2 & 3. Neighbour propagation, applied to the window interior only ---
        if self.policy == 'ringed':
            interior = np.zeros(halo.shape, dtype=bool)
            interior[1:-1, 1:-1] = True

            touches_full = binary_dilation(halo == CellClass.FULL_UNLOCKED, structure=_CROSS)
            promote_partial = interior & touches_full & (halo != CellClass.FULL_UNLOCKED)
            halo[promote_partial] = CellClass.PARTIAL_UNLOCKED

            touches_partial = binary_dilation(halo == CellClass.PARTIAL_UNLOCKED, structure=_CROSS)
            promote_adjacent = interior & touches_partial & (halo == CellClass.FULL_LOCKED)
            halo[promote_adjacent] = CellClass.ADJACENT_UNLOCKED

        window = CellWindow(
            start_x, start_z, count_x, count_z,
            corner_unlocked=unlocked[1:-1, 1:-1].copy(),
            corner_heights=heights[1:-1, 1:-1].copy(),
            classes=halo[1:-1, 1:-1].copy(),
            halo_classes=halo,
        )
        self.logger.debug(
            f"Classified window at ({start_x}, {start_z}) size {count_x}x{count_z}: {window.class_counts()}"
        )
        return window

    def classify_map(self) -> CellWindow:
        """Single-pass classification of every cell on the map."""
        return self.classify_window(0, 0, self.grid_count_x, self.grid_count_z)

def vertex_classes(window: CellWindow) -> np.ndarray:
    """
    The dominant class of every corner of a window: a corner shared by up to
    four cells takes the highest class among the in-window cells around it.
    """
    padded = np.pad(window.classes, 1, constant_values=CellClass.FULL_LOCKED)
    return np.maximum.reduce([
        padded[:-1, :-1], padded[:-1, 1:], padded[1:, :-1], padded[1:, 1:],
    ]).astype(np.int8)

def neighbor_full_unlocked(window: CellWindow) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    For every cell of a window, whether its left, right, top and bottom
    neighbour is FULL_UNLOCKED. Top is +z, bottom is -z.
    """
    full = window.halo_classes == CellClass.FULL_UNLOCKED
    left = full[1:-1, :-2]
    right = full[1:-1, 2:]
    top = full[2:, 1:-1]
    bottom = full[:-2, 1:-1]
    return left, right, top, bottom
