# fog_generator/terrain.py

"""
================================================================================
TERRAIN DATA SOURCE
================================================================================
This module provides the corner-based terrain store that the fog classifier
and the mesh builder read from. Every corner of the native "data" grid carries
a height, a terrain type and an unlocked flag.

Data Contract:
---------------
- Inputs (on initialization):
    - config (dict): Parameters overriding the defaults in `config.py`
      (map size, data cell size, noise and unlock settings).
    - logger: A configured Python logging object for runtime messages.
- Outputs (from methods):
    - `TerrainVertex` records and NumPy corner grids indexed [z, x].
- Side Effects: `unlock_cell` / `unlock_area` mutate the unlock mask. Nothing
  else mutates the store after construction.
- Invariants:
    - Every read is total: coordinates outside the data grid return the
      default vertex (height 0, locked) instead of raising.
    - Display-grid queries are remapped to the data grid by nearest neighbour,
      so two tiles asking for the same global corner always get the same data.
    - Given the same seed and configuration, the store is deterministic.
================================================================================
"""

import logging
import math
from enum import IntEnum
from typing import NamedTuple, Protocol

import numpy as np

from . import config as DEFAULTS
from . import noise

class TerrainType(IntEnum):
    """Terrain categories. UNLOCKED marks corners that were already revealed."""
    PLAIN = 0
    HILL = 1
    MOUNTAIN = 2
    LAKE = 3
    FOREST = 4
    UNLOCKED = 5

# Order in which the weighted terrain types are laid out along the type noise.
_WEIGHTED_TYPES = (
    ("plain", TerrainType.PLAIN),
    ("hill", TerrainType.HILL),
    ("mountain", TerrainType.MOUNTAIN),
    ("lake", TerrainType.LAKE),
    ("forest", TerrainType.FOREST),
)

class TerrainVertex(NamedTuple):
    height: float
    unlocked: bool
    terrain_type: TerrainType = TerrainType.PLAIN
    noise_value: float = 0.0

    @property
    def is_revealed(self) -> bool:
        """True if the corner counts as unlocked for fog classification."""
        return self.unlocked or self.terrain_type == TerrainType.UNLOCKED

DEFAULT_VERTEX = TerrainVertex(height=0.0, unlocked=False)

class TerrainDataSource(Protocol):
    """
    The read interface the fog core consumes. Any store providing these
    members can drive the classifier and the mesh builder.
    """
    map_width: float
    map_height: float
    data_cell_size: float
    data_grid_count_x: int
    data_grid_count_z: int

    def vertex_at(self, x: int, z: int) -> TerrainVertex: ...
    def cell_corners(self, cell_x: int, cell_z: int) -> tuple[bool, tuple[TerrainVertex, ...]]: ...
    def vertex_at_display(self, x: int, z: int, cell_size: float) -> TerrainVertex: ...
    def sample_display_corners(self, start_x: int, start_z: int, count_x: int, count_z: int,
                               cell_size: float) -> tuple[np.ndarray, np.ndarray]: ...

def display_to_data_index(display_index, cell_size: float, data_cell_size: float):
    """
    Maps display-grid corner indices to the nearest data-grid corner index.
    Works on Python ints and NumPy arrays alike; halves round up.
    """
    return np.floor(np.asarray(display_index) * cell_size / data_cell_size + 0.5).astype(np.int64)

class TerrainDataReader:
    """
    Noise-generated terrain corner store with an explicit unlock mask.
    Owned by the fog system and passed by reference to every consumer.
    """
    def __init__(self, config: dict, logger: logging.Logger, permutation_table: np.ndarray = None):
        """
        Initializes the store and generates every corner.

        Args:
            config (dict): User-defined parameters to override defaults.
            logger (logging.Logger): The logger instance for all output.
            permutation_table (np.ndarray, optional): A pre-computed noise
                permutation table. If None, one is generated from the seed.
        """
        self.logger = logger
        self.user_config = config

        # --- Consolidate Configuration ---
        self.settings = {
            'map_width': self.user_config.get('map_width', DEFAULTS.DEFAULT_MAP_WIDTH),
            'map_height': self.user_config.get('map_height', DEFAULTS.DEFAULT_MAP_HEIGHT),
            'data_cell_size': self.user_config.get('data_cell_size', DEFAULTS.DEFAULT_DATA_CELL_SIZE),
            'seed': self.user_config.get('seed', DEFAULTS.DEFAULT_SEED),
            'noise_scale': self.user_config.get('noise_scale', DEFAULTS.DEFAULT_NOISE_SCALE),
            'base_height': self.user_config.get('base_height', DEFAULTS.DEFAULT_BASE_HEIGHT),
            'height_variation': self.user_config.get('height_variation', DEFAULTS.DEFAULT_HEIGHT_VARIATION),
            'terrain_height_offsets': self.user_config.get('terrain_height_offsets', DEFAULTS.TERRAIN_HEIGHT_OFFSETS),
            'terrain_weights': self.user_config.get('terrain_weights', DEFAULTS.TERRAIN_WEIGHTS),
            'unlock_noise_scale': self.user_config.get('unlock_noise_scale', DEFAULTS.DEFAULT_UNLOCK_NOISE_SCALE),
            'unlock_noise_offset': self.user_config.get('unlock_noise_offset', DEFAULTS.DEFAULT_UNLOCK_NOISE_OFFSET),
            'unlock_threshold': self.user_config.get('unlock_threshold', DEFAULTS.DEFAULT_UNLOCK_THRESHOLD),
            'unlocked_height': self.user_config.get('unlocked_height', DEFAULTS.DEFAULT_UNLOCKED_HEIGHT),
        }

        # --- Public Properties for easy access ---
        self.map_width = float(self.settings['map_width'])
        self.map_height = float(self.settings['map_height'])
        self.data_cell_size = float(self.settings['data_cell_size'])

        # Cells cover the map; corners are one more than cells on each axis.
        self.data_grid_count_x = math.ceil(self.map_width / self.data_cell_size)
        self.data_grid_count_z = math.ceil(self.map_height / self.data_cell_size)
        self.vertex_count_x = self.data_grid_count_x + 1
        self.vertex_count_z = self.data_grid_count_z + 1

        # --- Initialize Noise ---
        if permutation_table is not None:
            self._p = permutation_table
            self.logger.debug("Initialized with injected permutation table.")
        else:
            self._p = noise.create_permutation_table(self.settings['seed'])
        self.permutation_table = self._p

        # --- Corner Storage [z, x] ---
        shape = (self.vertex_count_z, self.vertex_count_x)
        self._heights = np.zeros(shape, dtype=np.float64)
        self._types = np.full(shape, TerrainType.PLAIN, dtype=np.uint8)
        self._noise = np.zeros(shape, dtype=np.float64)
        self._unlocked = np.zeros(shape, dtype=bool)

        self._generate_all_vertex_data()

        self.logger.info(
            f"TerrainDataReader: map {self.map_width}x{self.map_height}m, data cell {self.data_cell_size}m, "
            f"{self.data_grid_count_x}x{self.data_grid_count_z} cells, "
            f"{self.vertex_count_x}x{self.vertex_count_z} corners"
        )

    # --- Generation ---
    def _generate_all_vertex_data(self):
        """Fills every corner. Heights first, then the unlock mask on top."""
        xs = np.arange(self.vertex_count_x, dtype=np.float64)
        zs = np.arange(self.vertex_count_z, dtype=np.float64)
        xx, zz = np.meshgrid(xs, zs)
        scale = self.settings['noise_scale']

        # 1. Height noise. The half-cell offset keeps samples off the lattice,
        #    where Perlin noise is always zero.
        height_noise = noise.sample_noise_01(self._p, (xx + 0.5) * scale, (zz + 0.5) * scale, octaves=2)
        self._noise[:] = height_noise

        # 2. Terrain types from a decorrelated noise layer and cumulative weights.
        type_noise = noise.sample_noise_01(
            self._p,
            (xx + DEFAULTS.TERRAIN_TYPE_SEED_OFFSET) * scale,
            (zz + DEFAULTS.TERRAIN_TYPE_SEED_OFFSET) * scale,
        )
        weights = np.array([self.settings['terrain_weights'].get(name, 0.0) for name, _ in _WEIGHTED_TYPES])
        cumulative = np.cumsum(weights) / max(weights.sum(), 1e-9)
        type_index = np.minimum(np.searchsorted(cumulative, type_noise), len(_WEIGHTED_TYPES) - 1)
        type_ids = np.array([int(t) for _, t in _WEIGHTED_TYPES], dtype=np.uint8)
        self._types[:] = type_ids[type_index]

        # 3. Heights: base +/- half the variation, plus the per-type offset.
        offsets = np.array([self.settings['terrain_height_offsets'].get(name, 0.0) for name, _ in _WEIGHTED_TYPES])
        self._heights[:] = (
            self.settings['base_height']
            + (height_noise - 0.5) * self.settings['height_variation']
            + offsets[type_index]
        )

        # 4. Initial unlock mask, decided per data cell and spread to its corners.
        cell_x = np.arange(self.data_grid_count_x, dtype=np.float64)
        cell_z = np.arange(self.data_grid_count_z, dtype=np.float64)
        cxx, czz = np.meshgrid(cell_x, cell_z)
        unlock_scale = self.settings['unlock_noise_scale']
        unlock_offset = self.settings['unlock_noise_offset']
        unlock_noise = noise.sample_noise_01(
            self._p,
            cxx * unlock_scale + unlock_offset + 0.5 * unlock_scale,
            czz * unlock_scale + unlock_offset + 0.5 * unlock_scale,
        )
        unlocked_cells = unlock_noise > self.settings['unlock_threshold']
        self._mark_corners_unlocked(self._cells_to_corners(unlocked_cells))

    def _cells_to_corners(self, cell_mask: np.ndarray) -> np.ndarray:
        """A corner is selected if any of the (up to 4) cells around it is."""
        padded = np.pad(cell_mask, 1, constant_values=False)
        return padded[:-1, :-1] | padded[:-1, 1:] | padded[1:, :-1] | padded[1:, 1:]

    def _mark_corners_unlocked(self, corner_mask: np.ndarray):
        self._unlocked |= corner_mask
        self._types[corner_mask] = TerrainType.UNLOCKED
        self._heights[corner_mask] = self.settings['unlocked_height']

    # --- Read API (all total) ---
    def _in_vertex_grid(self, x: int, z: int) -> bool:
        return 0 <= x < self.vertex_count_x and 0 <= z < self.vertex_count_z

    def vertex_at(self, x: int, z: int) -> TerrainVertex:
        """Returns the data-grid corner at (x, z), or the default vertex outside the grid."""
        if not self._in_vertex_grid(x, z):
            return DEFAULT_VERTEX
        return TerrainVertex(
            height=float(self._heights[z, x]),
            unlocked=bool(self._unlocked[z, x]),
            terrain_type=TerrainType(int(self._types[z, x])),
            noise_value=float(self._noise[z, x]),
        )

    def cell_corners(self, cell_x: int, cell_z: int) -> tuple[bool, tuple[TerrainVertex, ...]]:
        """
        Returns (ok, (bottom_left, bottom_right, top_right, top_left)) for a data
        cell. `ok` is False outside the data grid and the corners are defaults.
        """
        if not (0 <= cell_x < self.data_grid_count_x and 0 <= cell_z < self.data_grid_count_z):
            return False, (DEFAULT_VERTEX,) * 4
        return True, (
            self.vertex_at(cell_x, cell_z),
            self.vertex_at(cell_x + 1, cell_z),
            self.vertex_at(cell_x + 1, cell_z + 1),
            self.vertex_at(cell_x, cell_z + 1),
        )

    def vertex_at_display(self, x: int, z: int, cell_size: float) -> TerrainVertex:
        """Looks up a display-grid corner through the nearest data-grid corner."""
        data_x = int(display_to_data_index(x, cell_size, self.data_cell_size))
        data_z = int(display_to_data_index(z, cell_size, self.data_cell_size))
        return self.vertex_at(data_x, data_z)

    def height_at_world(self, world_x: float, world_z: float) -> float:
        """Height of the data corner nearest to a world position; 0 off the grid."""
        data_x = int(display_to_data_index(world_x, 1.0, self.data_cell_size))
        data_z = int(display_to_data_index(world_z, 1.0, self.data_cell_size))
        return self.vertex_at(data_x, data_z).height

    def sample_display_corners(self, start_x: int, start_z: int, count_x: int, count_z: int,
                               cell_size: float) -> tuple[np.ndarray, np.ndarray]:
        """
        Vectorised `vertex_at_display` over a rectangle of display corners.

        Returns:
            (heights, unlocked): arrays of shape (count_z, count_x). Corners that
            fall outside the data grid read as height 0 and locked.
        """
        gx = np.arange(start_x, start_x + count_x)
        gz = np.arange(start_z, start_z + count_z)
        data_x = display_to_data_index(gx, cell_size, self.data_cell_size)
        data_z = display_to_data_index(gz, cell_size, self.data_cell_size)

        valid_x = (data_x >= 0) & (data_x < self.vertex_count_x)
        valid_z = (data_z >= 0) & (data_z < self.vertex_count_z)
        ix = np.clip(data_x, 0, self.vertex_count_x - 1)
        iz = np.clip(data_z, 0, self.vertex_count_z - 1)

        valid = np.outer(valid_z, valid_x)
        rows, cols = np.ix_(iz, ix)
        revealed = self._unlocked[rows, cols] | (self._types[rows, cols] == TerrainType.UNLOCKED)
        heights = np.where(valid, self._heights[rows, cols], 0.0)
        unlocked = revealed & valid
        return heights, unlocked

    # --- Unlock Mutations ---
    def unlock_cell(self, cell_x: int, cell_z: int) -> bool:
        """Unlocks the four corners of a data cell. Returns False outside the grid."""
        if not (0 <= cell_x < self.data_grid_count_x and 0 <= cell_z < self.data_grid_count_z):
            return False
        mask = np.zeros_like(self._unlocked)
        mask[cell_z:cell_z + 2, cell_x:cell_x + 2] = True
        self._mark_corners_unlocked(mask)
        return True

    def unlock_area(self, center_x: float, center_z: float, radius: float) -> tuple[int, int, int, int] | None:
        """
        Unlocks every data cell within `radius` (world units) of a world position.

        Returns:
            The affected data-cell rectangle (min_x, min_z, max_x, max_z),
            inclusive, or None if nothing inside the grid was touched.
        """
        center_cell_x = int(np.floor(center_x / self.data_cell_size + 0.5))
        center_cell_z = int(np.floor(center_z / self.data_cell_size + 0.5))
        radius_cells = int(np.floor(radius / self.data_cell_size + 0.5))

        min_x = max(center_cell_x - radius_cells, 0)
        max_x = min(center_cell_x + radius_cells, self.data_grid_count_x - 1)
        min_z = max(center_cell_z - radius_cells, 0)
        max_z = min(center_cell_z + radius_cells, self.data_grid_count_z - 1)
        if min_x > max_x or min_z > max_z:
            return None

        cell_x = np.arange(min_x, max_x + 1)
        cell_z = np.arange(min_z, max_z + 1)
        cxx, czz = np.meshgrid(cell_x, cell_z)
        in_circle = np.hypot(cxx - center_cell_x, czz - center_cell_z) <= radius_cells
        if not in_circle.any():
            return None

        cell_mask = np.zeros((self.data_grid_count_z, self.data_grid_count_x), dtype=bool)
        cell_mask[min_z:max_z + 1, min_x:max_x + 1] = in_circle
        self._mark_corners_unlocked(self._cells_to_corners(cell_mask))

        self.logger.info(
            f"Unlocked {int(in_circle.sum())} data cells around ({center_x:.1f}, {center_z:.1f}) r={radius:.1f}"
        )
        return min_x, min_z, max_x, max_z

    # --- Diagnostics ---
    @property
    def height_grid(self) -> np.ndarray:
        """Read-only view of every corner height, [z, x]."""
        view = self._heights.view()
        view.flags.writeable = False
        return view

    @property
    def type_grid(self) -> np.ndarray:
        view = self._types.view()
        view.flags.writeable = False
        return view

    def statistics(self) -> dict:
        """Counts corners per terrain type and the unlocked share of the map."""
        counts = np.bincount(self._types.ravel(), minlength=len(TerrainType))
        total = self._unlocked.size
        unlocked = int(self._unlocked.sum())
        return {
            'terrain_counts': {t.name.lower(): int(counts[t]) for t in TerrainType},
            'unlocked_corners': unlocked,
            'total_corners': total,
            'unlocked_ratio': unlocked / total if total else 0.0,
        }
