# fog_generator/runtime/fog_system.py

"""
================================================================================
FOG SYSTEM RUNTIME
================================================================================
This module provides the user-facing `FogSystem` class, which owns the terrain
source, splits the map into tiles, builds one fog mesh per tile and keeps the
camera-visible tiles active. It is the single object a game loop talks to.

Data Contract:
---------------
- Inputs:
    - config (dict): Overrides for the defaults in `fog_generator/config.py`.
    - terrain (optional): Any `TerrainDataSource`. A `TerrainDataReader` is
      generated from the config if none is given.
    - camera (optional): Any object satisfying `culling.Camera`.
- Outputs:
    - One `Tile` per map block, each owning a `TileMesh` and an active flag.
    - Queries: tile activation, active tile count, whole-map cell classes.
- Side Effects: Tile meshes are rewritten in place on regeneration. Listeners
  registered with `add_activation_listener` are called on every transition.
- Invariants:
    - Tiles cover the display grid without gaps or overlaps. Tiles on the far
      edges may be smaller than the nominal footprint.
    - Work happens only inside `initialize`, `update` and the explicit
      regeneration / unlock calls; nothing runs in the background.
================================================================================
"""

import logging
import math

import numpy as np

from .. import config as DEFAULTS
from ..classifier import CellClass, CellClassifier, CellWindow
from ..culling import Camera, FrustumCuller, TileListener
from ..mesh_builder import TileMesh, TileMeshBuilder
from ..terrain import TerrainDataReader, TerrainDataSource

_POSITIVE_KEYS = ('map_width', 'map_height', 'cell_size', 'data_cell_size', 'mesh_width', 'mesh_height')

def resolve_settings(user_config: dict, logger: logging.Logger = None) -> dict:
    """
    Merges a user configuration over the defaults and validates the result.
    Mesh sizes that are not whole multiples of the cell size are accepted with
    a warning: culling then works on the nominal tile footprint, which drifts
    from the cell spans the tiles actually cover.

    Raises:
        ValueError: If a size is not positive, the margin is negative or a
            policy name is unknown.
    """
    settings = {
        'map_width': user_config.get('map_width', DEFAULTS.DEFAULT_MAP_WIDTH),
        'map_height': user_config.get('map_height', DEFAULTS.DEFAULT_MAP_HEIGHT),
        'cell_size': user_config.get('cell_size', DEFAULTS.DEFAULT_CELL_SIZE),
        'data_cell_size': user_config.get('data_cell_size', DEFAULTS.DEFAULT_DATA_CELL_SIZE),
        'mesh_width': user_config.get('mesh_width', DEFAULTS.DEFAULT_MESH_WIDTH),
        'mesh_height': user_config.get('mesh_height', DEFAULTS.DEFAULT_MESH_HEIGHT),
        'enable_frustum_culling': user_config.get('enable_frustum_culling', DEFAULTS.DEFAULT_ENABLE_FRUSTUM_CULLING),
        'ground_plane_height': user_config.get('ground_plane_height', DEFAULTS.DEFAULT_GROUND_PLANE_HEIGHT),
        'culling_margin': user_config.get('culling_margin', DEFAULTS.DEFAULT_CULLING_MARGIN),
        'classification_policy': user_config.get('classification_policy', DEFAULTS.DEFAULT_CLASSIFICATION_POLICY),
        'partial_policy': user_config.get('partial_policy', DEFAULTS.DEFAULT_PARTIAL_POLICY),
        'subdivide_adjacent': user_config.get('subdivide_adjacent', DEFAULTS.DEFAULT_SUBDIVIDE_ADJACENT),
    }

    for key in _POSITIVE_KEYS:
        if not settings[key] > 0:
            raise ValueError(f"'{key}' must be positive, got {settings[key]!r}")
    if settings['culling_margin'] < 0:
        raise ValueError(f"'culling_margin' must not be negative, got {settings['culling_margin']!r}")
    if settings['classification_policy'] not in DEFAULTS.CLASSIFICATION_POLICIES:
        raise ValueError(
            f"Unknown classification_policy {settings['classification_policy']!r}; "
            f"expected one of {DEFAULTS.CLASSIFICATION_POLICIES}"
        )
    if settings['partial_policy'] not in DEFAULTS.PARTIAL_POLICIES:
        raise ValueError(
            f"Unknown partial_policy {settings['partial_policy']!r}; expected one of {DEFAULTS.PARTIAL_POLICIES}"
        )

    logger = logger or logging.getLogger(__name__)
    for key in ('mesh_width', 'mesh_height'):
        cells = settings[key] / settings['cell_size']
        if not math.isclose(cells, round(cells), abs_tol=1e-9):
            logger.warning(
                f"'{key}' ({settings[key]}) is not a multiple of 'cell_size' ({settings['cell_size']}); "
                f"culled tile footprints will not line up with tile meshes."
            )
    return settings

class Tile:
    """One block of display cells and the fog mesh built for it."""
    def __init__(self, tile_x: int, tile_z: int, start_x: int, start_z: int,
                 count_x: int, count_z: int, cell_size: float):
        self.tile_x = tile_x
        self.tile_z = tile_z
        self.start_x = start_x
        self.start_z = start_z
        self.count_x = count_x
        self.count_z = count_z
        self.cell_size = cell_size
        self.mesh = TileMesh()
        self.window: CellWindow | None = None
        self.active = False

    @property
    def world_bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_z, max_x, max_z) of the tile's footprint in world units."""
        return (
            self.start_x * self.cell_size,
            self.start_z * self.cell_size,
            (self.start_x + self.count_x) * self.cell_size,
            (self.start_z + self.count_z) * self.cell_size,
        )

    def __repr__(self):
        return (f"Tile(({self.tile_x}, {self.tile_z}), cells {self.start_x}+{self.count_x} x "
                f"{self.start_z}+{self.count_z}, active={self.active})")

class FogSystem:
    """
    The main runtime class. Builds the tiled fog mesh and drives culling.
    """
    def __init__(self, config: dict, logger: logging.Logger = None,
                 terrain: TerrainDataSource = None, camera: Camera = None):
        """
        Initializes the system. No mesh is built until `initialize` is called.

        Args:
            config (dict): User-defined parameters to override defaults.
            logger (logging.Logger, optional): Logger for all output.
            terrain (TerrainDataSource, optional): A pre-built terrain source.
            camera (Camera, optional): The camera that drives culling.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config
        self.settings = resolve_settings(config, self.logger)
        self.camera = camera

        # --- 1. Grid and Tile Layout ---
        self.cell_size = float(self.settings['cell_size'])
        self.grid_count_x = math.ceil(self.settings['map_width'] / self.cell_size)
        self.grid_count_z = math.ceil(self.settings['map_height'] / self.cell_size)
        self.tile_count_x = math.ceil(self.settings['map_width'] / self.settings['mesh_width'])
        self.tile_count_z = math.ceil(self.settings['map_height'] / self.settings['mesh_height'])

        # --- 2. Core Components (composition, no shared globals) ---
        self.terrain = terrain if terrain is not None else TerrainDataReader(config, self.logger)
        self.classifier = CellClassifier(
            self.terrain, self.cell_size, self.grid_count_x, self.grid_count_z,
            policy=self.settings['classification_policy'], logger=self.logger,
        )
        self.builder = TileMeshBuilder(
            self.classifier, self.cell_size,
            partial_policy=self.settings['partial_policy'],
            subdivide_adjacent=self.settings['subdivide_adjacent'],
            logger=self.logger,
        )
        self.culler = FrustumCuller(
            self.tile_count_x, self.tile_count_z,
            self.settings['mesh_width'], self.settings['mesh_height'],
            ground_plane_height=self.settings['ground_plane_height'],
            margin=self.settings['culling_margin'],
            logger=self.logger,
        )
        self.culler.add_listener(self._sync_tile_state)

        # --- 3. Tiles, indexed [tile_z][tile_x] ---
        self.tiles = [
            [self._create_tile(tx, tz) for tx in range(self.tile_count_x)]
            for tz in range(self.tile_count_z)
        ]

        # Whole-map classification, filled tile by tile for debug drawing.
        self.cell_classes = np.zeros((self.grid_count_z, self.grid_count_x), dtype=np.int8)
        self.initialized = False

        self.logger.info(
            f"FogSystem: map {self.settings['map_width']}x{self.settings['map_height']}m, "
            f"cell {self.cell_size}m ({self.grid_count_x}x{self.grid_count_z} cells), "
            f"tile {self.settings['mesh_width']}x{self.settings['mesh_height']}m "
            f"({self.tile_count_x}x{self.tile_count_z} tiles)"
        )

    def _cell_span(self, tile_index: int, mesh_size: float, tile_count: int, grid_count: int) -> tuple[int, int]:
        start = min(math.floor(tile_index * mesh_size / self.cell_size), grid_count)
        if tile_index == tile_count - 1:
            end = grid_count
        else:
            end = min(math.floor((tile_index + 1) * mesh_size / self.cell_size), grid_count)
        return start, max(end, start)

    def _create_tile(self, tile_x: int, tile_z: int) -> Tile:
        start_x, end_x = self._cell_span(tile_x, self.settings['mesh_width'], self.tile_count_x, self.grid_count_x)
        start_z, end_z = self._cell_span(tile_z, self.settings['mesh_height'], self.tile_count_z, self.grid_count_z)
        return Tile(tile_x, tile_z, start_x, start_z, end_x - start_x, end_z - start_z, self.cell_size)

    def _sync_tile_state(self, tile_x: int, tile_z: int, active: bool):
        self.tiles[tile_z][tile_x].active = active

    # --- Lifecycle ---
    def initialize(self):
        """Builds every tile mesh and applies the initial activation state."""
        self.logger.info(f"Building {self.tile_count_x * self.tile_count_z} fog tiles...")
        self.regenerate_all()
        self.initialized = True

        # With culling and a camera, start hidden and let the first pass decide.
        if self.culling_enabled and self.camera is not None:
            self.culler.set_all_active(False)
            self.culler.update(self.camera)
        else:
            if self.culling_enabled:
                self.logger.warning("Frustum culling is enabled but no camera is set; all tiles start active.")
            self.culler.set_all_active(True)

        stats = self.statistics()
        self.logger.info(
            f"FogSystem ready: {stats['total_vertices']} vertices, {stats['total_triangles']} triangles, "
            f"{stats['active_tiles']}/{stats['tile_count']} tiles active"
        )
        self.logger.info(f"Cell classes: {stats['cell_classes']}")
        if hasattr(self.terrain, 'statistics'):
            terrain_stats = self.terrain.statistics()
            self.logger.info(
                f"Terrain: {terrain_stats['unlocked_ratio']:.1%} of corners unlocked, "
                f"types {terrain_stats['terrain_counts']}"
            )

    def update(self, camera: Camera = None) -> list[tuple[int, int, bool]]:
        """
        Per-frame tick. Re-runs culling against the current camera.

        Returns:
            The (tile_x, tile_z, active) transitions caused by this frame.
        """
        if camera is not None:
            self.camera = camera
        if not self.initialized or not self.culling_enabled or self.camera is None:
            return []
        return self.culler.update(self.camera)

    # --- Culling Control ---
    @property
    def culling_enabled(self) -> bool:
        return bool(self.settings['enable_frustum_culling'])

    def set_camera(self, camera: Camera):
        self.camera = camera
        if self.initialized and self.culling_enabled and camera is not None:
            self.culler.update(camera)

    def set_frustum_culling_enabled(self, enabled: bool):
        """Disabling culling activates every tile; enabling it re-culls immediately."""
        self.settings['enable_frustum_culling'] = enabled
        self.logger.info(f"Frustum culling {'enabled' if enabled else 'disabled'}.")
        if not self.initialized:
            return
        if enabled:
            self.force_culling_update()
        else:
            self.culler.set_all_active(True)

    def force_culling_update(self) -> list[tuple[int, int, bool]]:
        if not self.culling_enabled:
            return []
        if self.camera is None:
            self.logger.warning("Culling update requested without a camera; ignored.")
            return []
        return self.culler.update(self.camera)

    def add_activation_listener(self, listener: TileListener):
        """Registers `listener(tile_x, tile_z, active)`, called on every transition."""
        self.culler.add_listener(listener)

    # --- Queries ---
    def tile(self, tile_x: int, tile_z: int) -> Tile | None:
        if not (0 <= tile_x < self.tile_count_x and 0 <= tile_z < self.tile_count_z):
            return None
        return self.tiles[tile_z][tile_x]

    def is_tile_active(self, tile_x: int, tile_z: int) -> bool:
        return self.culler.is_active(tile_x, tile_z)

    def active_tile_count(self) -> int:
        return self.culler.active_count()

    def iter_tiles(self):
        for row in self.tiles:
            yield from row

    # --- Regeneration ---
    def regenerate_tile(self, tile_x: int, tile_z: int) -> bool:
        """Rebuilds one tile's mesh in place. False if the index is out of range."""
        tile = self.tile(tile_x, tile_z)
        if tile is None:
            return False
        _, window = self.builder.build(tile.start_x, tile.start_z, tile.count_x, tile.count_z, mesh=tile.mesh)
        tile.window = window
        if not window.is_empty:
            self.cell_classes[
                tile.start_z:tile.start_z + tile.count_z,
                tile.start_x:tile.start_x + tile.count_x,
            ] = window.classes
        return True

    def regenerate_all(self):
        for tile in self.iter_tiles():
            self.regenerate_tile(tile.tile_x, tile.tile_z)

    def tiles_overlapping(self, min_x: float, min_z: float, max_x: float, max_z: float) -> list[tuple[int, int]]:
        """Tile indices whose footprint overlaps a world rectangle, clamped to the grid."""
        tile_min_x = max(math.floor(min_x / self.settings['mesh_width']), 0)
        tile_max_x = min(math.floor(max_x / self.settings['mesh_width']), self.tile_count_x - 1)
        tile_min_z = max(math.floor(min_z / self.settings['mesh_height']), 0)
        tile_max_z = min(math.floor(max_z / self.settings['mesh_height']), self.tile_count_z - 1)
        return [
            (tx, tz)
            for tz in range(tile_min_z, tile_max_z + 1)
            for tx in range(tile_min_x, tile_max_x + 1)
        ]

    def unlock_area(self, center_x: float, center_z: float, radius: float) -> list[tuple[int, int]]:
        """
        Unlocks terrain around a world position and rebuilds only the tiles
        whose classification can have changed.

        Returns:
            The (tile_x, tile_z) indices that were regenerated.
        """
        if not hasattr(self.terrain, 'unlock_area'):
            self.logger.warning("Terrain source does not support unlocking; unlock_area ignored.")
            return []
        affected = self.terrain.unlock_area(center_x, center_z, radius)
        if affected is None:
            return []

        # Changed data corners reach one data cell past the rect. Nearest
        # neighbour remapping and neighbour propagation add a few display cells.
        data_cell_size = self.terrain.data_cell_size
        min_cell_x, min_cell_z, max_cell_x, max_cell_z = affected
        pad = 3 * self.cell_size
        touched = self.tiles_overlapping(
            (min_cell_x - 1) * data_cell_size - pad,
            (min_cell_z - 1) * data_cell_size - pad,
            (max_cell_x + 2) * data_cell_size + pad,
            (max_cell_z + 2) * data_cell_size + pad,
        )
        for tile_x, tile_z in touched:
            self.regenerate_tile(tile_x, tile_z)
        self.logger.info(f"Regenerated {len(touched)} tiles after unlocking around ({center_x:.1f}, {center_z:.1f}).")
        return touched

    # --- Diagnostics ---
    def statistics(self) -> dict:
        counts = np.bincount(self.cell_classes.ravel().astype(np.int64), minlength=len(CellClass))
        tiles = list(self.iter_tiles())
        return {
            'tile_count': len(tiles),
            'active_tiles': self.active_tile_count(),
            'total_vertices': sum(t.mesh.vertex_count for t in tiles),
            'total_triangles': sum(t.mesh.triangle_count for t in tiles),
            'cell_classes': {c.name: int(counts[c]) for c in CellClass},
        }

    @property
    def frustum_ground_points(self) -> np.ndarray | None:
        """Ground points of the most recent culling pass, for debug drawing."""
        return self.culler.last_ground_points

    @property
    def visible_tile_range(self) -> tuple[int, int, int, int] | None:
        return self.culler.last_visible_range
