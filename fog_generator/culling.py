# fog_generator/culling.py

"""
================================================================================
VISIBILITY CULLER
================================================================================
This module keeps the set of active tiles in sync with the camera. Every
update projects the camera's far-plane corners onto the ground plane, takes
the bounding rectangle of those points, widens it by a margin, and activates
exactly the tiles inside the resulting index range.

Data Contract:
---------------
- Inputs:
    - tile_count_x, tile_count_z: The size of the tile grid.
    - mesh_width, mesh_height: The world footprint of one tile.
    - ground_plane_height: The y of the horizontal plane rays are cast against.
    - margin: World distance added on every side of the projected footprint.
    - camera: Any object satisfying the `Camera` protocol below.
- Outputs:
    - `update` returns the list of (tile_x, tile_z, active) transitions.
- Side Effects: Flips tile activation flags and notifies listeners, but only
  for tiles whose state actually changed.
- Invariants:
    - Corners are always processed in the order bottom-left, bottom-right,
      top-right, top-left (NDC), so the footprint is reproducible.
    - A second update with an unchanged camera produces no transitions.
    - An update never fails: rays that miss the plane fall back to the point
      at the camera's far-clip distance.
================================================================================
"""

import logging
from typing import Callable, Protocol

import numpy as np

from . import config as DEFAULTS

# Far-plane corners in normalised device coordinates: BL, BR, TR, TL.
NDC_CORNERS = ((-1.0, -1.0), (1.0, -1.0), (1.0, 1.0), (-1.0, 1.0))

# Below this |direction.y| a ray counts as parallel to the ground.
_PARALLEL_EPSILON = 1e-6

class Camera(Protocol):
    """
    The interface the culler expects for a camera. Any class providing these
    members can drive culling.
    """
    position: np.ndarray
    far_clip: float

    def viewport_to_world(self, u: float, v: float, depth: float) -> np.ndarray: ...

TileListener = Callable[[int, int, bool], None]

def ray_ground_intersection(origin: np.ndarray, direction: np.ndarray, ground_height: float,
                            fallback_distance: float) -> np.ndarray:
    """
    Intersects a ray with the plane y = ground_height. If the ray is parallel
    to the plane or points away from it, returns the point `fallback_distance`
    along the ray instead.
    """
    origin = np.asarray(origin, dtype=np.float64)
    direction = np.asarray(direction, dtype=np.float64)
    if abs(direction[1]) > _PARALLEL_EPSILON:
        t = (ground_height - origin[1]) / direction[1]
        if t >= 0.0:
            return origin + direction * t
    return origin + direction * fallback_distance

class FrustumCuller:
    """Tracks which tiles are active and flips them as the camera moves."""

    def __init__(self, tile_count_x: int, tile_count_z: int, mesh_width: float, mesh_height: float,
                 ground_plane_height: float = DEFAULTS.DEFAULT_GROUND_PLANE_HEIGHT,
                 margin: float = DEFAULTS.DEFAULT_CULLING_MARGIN,
                 logger: logging.Logger = None):
        self.tile_count_x = tile_count_x
        self.tile_count_z = tile_count_z
        self.mesh_width = mesh_width
        self.mesh_height = mesh_height
        self.ground_plane_height = ground_plane_height
        self.margin = margin
        self.logger = logger or logging.getLogger(__name__)

        # Activation per tile, indexed [z, x].
        self.active = np.zeros((tile_count_z, tile_count_x), dtype=bool)
        self.listeners: list[TileListener] = []

        # Debug state from the most recent update.
        self.last_ground_points: np.ndarray | None = None
        self.last_visible_range: tuple[int, int, int, int] | None = None

    def add_listener(self, listener: TileListener):
        self.listeners.append(listener)

    def remove_listener(self, listener: TileListener):
        if listener in self.listeners:
            self.listeners.remove(listener)

    # --- Queries ---
    def is_active(self, tile_x: int, tile_z: int) -> bool:
        """False for indices outside the tile grid."""
        if not (0 <= tile_x < self.tile_count_x and 0 <= tile_z < self.tile_count_z):
            return False
        return bool(self.active[tile_z, tile_x])

    def active_count(self) -> int:
        return int(self.active.sum())

    # --- Projection ---
    def frustum_ground_points(self, camera: Camera) -> np.ndarray:
        """
        Casts a ray from the eye through each far-plane corner and intersects
        it with the ground plane.

        Returns:
            (4, 2) array of (x, z) ground points in BL, BR, TR, TL order.
        """
        eye = np.asarray(camera.position, dtype=np.float64)
        points = np.zeros((4, 2), dtype=np.float64)
        for i, (ndc_x, ndc_y) in enumerate(NDC_CORNERS):
            far_point = np.asarray(
                camera.viewport_to_world((ndc_x + 1.0) * 0.5, (ndc_y + 1.0) * 0.5, camera.far_clip),
                dtype=np.float64,
            )
            direction = far_point - eye
            length = np.linalg.norm(direction)
            if length > 0.0:
                direction = direction / length
            hit = ray_ground_intersection(eye, direction, self.ground_plane_height, camera.far_clip)
            points[i] = (hit[0], hit[2])
        return points

    def visible_range(self, ground_points: np.ndarray) -> tuple[int, int, int, int] | None:
        """
        The inclusive tile range (min_x, min_z, max_x, max_z) covered by the
        margin-expanded bounding rectangle of the ground points, clamped to
        the grid. None if the rectangle misses the tile grid entirely.
        """
        min_x, min_z = ground_points.min(axis=0) - self.margin
        max_x, max_z = ground_points.max(axis=0) + self.margin

        tile_min_x = int(np.floor(min_x / self.mesh_width))
        tile_max_x = int(np.floor(max_x / self.mesh_width))
        tile_min_z = int(np.floor(min_z / self.mesh_height))
        tile_max_z = int(np.floor(max_z / self.mesh_height))

        if (tile_max_x < 0 or tile_min_x > self.tile_count_x - 1
                or tile_max_z < 0 or tile_min_z > self.tile_count_z - 1):
            return None

        return (
            max(tile_min_x, 0),
            max(tile_min_z, 0),
            min(tile_max_x, self.tile_count_x - 1),
            min(tile_max_z, self.tile_count_z - 1),
        )

    # --- State Changes ---
    def update(self, camera: Camera) -> list[tuple[int, int, bool]]:
        """Recomputes visibility for the camera and flips only the tiles that changed."""
        self.last_ground_points = self.frustum_ground_points(camera)
        self.last_visible_range = self.visible_range(self.last_ground_points)

        target = np.zeros_like(self.active)
        if self.last_visible_range is not None:
            min_x, min_z, max_x, max_z = self.last_visible_range
            target[min_z:max_z + 1, min_x:max_x + 1] = True
        return self._apply(target)

    def set_all_active(self, active: bool) -> list[tuple[int, int, bool]]:
        target = np.full_like(self.active, active)
        return self._apply(target)

    def _apply(self, target: np.ndarray) -> list[tuple[int, int, bool]]:
        changed_z, changed_x = np.nonzero(target != self.active)
        transitions = []
        for tile_z, tile_x in zip(changed_z.tolist(), changed_x.tolist()):
            state = bool(target[tile_z, tile_x])
            self.active[tile_z, tile_x] = state
            transitions.append((tile_x, tile_z, state))
            for listener in self.listeners:
                listener(tile_x, tile_z, state)

        if transitions:
            self.logger.debug(
                f"Culling: {len(transitions)} tiles changed, {self.active_count()} active"
            )
        return transitions
