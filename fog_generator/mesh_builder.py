# fog_generator/mesh_builder.py

"""
================================================================================
TILE MESH BUILDER
================================================================================
This module turns one classified window of cells into a triangle mesh: a
row-major vertex grid with a per-vertex unlock encoding, and a triangle list
whose shape per cell depends on the cell's class.

Data Contract:
---------------
- Inputs:
    - classifier: A `classifier.CellClassifier` bound to the terrain source.
    - cell_size: Display cell edge length (world units).
    - partial_policy: 'neighbor' or 'corner' (see `config.PARTIAL_POLICIES`).
    - subdivide_adjacent: Whether ADJACENT_UNLOCKED cells get 4 sub-quads.
- Outputs:
    - `TileMesh`: float32 positions / UVs / unlock encoding / normals, int32
      triangles, and an axis-aligned bounding box.
- Side Effects: `build` rewrites the target `TileMesh` in place.
- Invariants:
    - Vertex counts along each axis are the cell counts plus one.
    - Every triangle has the same orientation: with y up, the cross product
      (v1 - v0) x (v2 - v0) points towards +y.
    - FULL_UNLOCKED cells emit no triangles.
    - Identical inputs give byte-identical buffers.
================================================================================
"""

import hashlib
import logging
from typing import Callable, NamedTuple

import numpy as np

from . import config as DEFAULTS
from .classifier import CellClass, CellClassifier, CellWindow, neighbor_full_unlocked, unlocked_corner_counts, vertex_classes

# Single-triangle cuts, named by the corner left out of the triangle.
NO_CUT = -1
DROP_TOP_LEFT = 0
DROP_TOP_RIGHT = 1
DROP_BOTTOM_RIGHT = 2
DROP_BOTTOM_LEFT = 3

# Extra vertices per subdivided cell: bottom, right, top and left edge
# midpoints followed by the centre.
SUBDIVISION_VERTEX_COUNT = 5

class TileMesh:
    """
    The mesh buffers owned by one tile. Regeneration clears and rewrites them
    wholesale; consumers must not keep references across a rebuild.
    """
    def __init__(self):
        self.clear()

    def clear(self):
        self.vertices = np.zeros((0, 3), dtype=np.float32)
        self.uvs = np.zeros((0, 2), dtype=np.float32)
        self.unlock_encoding = np.zeros((0, 2), dtype=np.float32)
        self.normals = np.zeros((0, 3), dtype=np.float32)
        self.triangles = np.zeros((0, 3), dtype=np.int32)
        self.vertex_classes = np.zeros(0, dtype=np.int8)
        self.bounds_min = np.zeros(3, dtype=np.float32)
        self.bounds_max = np.zeros(3, dtype=np.float32)
        # Grid layout of the base vertices, (count_x + 1, count_z + 1).
        self.grid_shape = (0, 0)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    @property
    def bounds_center(self) -> np.ndarray:
        return (self.bounds_min + self.bounds_max) * 0.5

    @property
    def bounds_size(self) -> np.ndarray:
        return self.bounds_max - self.bounds_min

    def content_hash(self) -> str:
        """A SHA-256 digest of every buffer, used to deduplicate baked tiles."""
        digest = hashlib.sha256()
        for buffer in (self.vertices, self.uvs, self.unlock_encoding, self.triangles):
            digest.update(np.ascontiguousarray(buffer).tobytes())
        return digest.hexdigest()

class CellContext(NamedTuple):
    """Flattened, row-major per-cell inputs shared by every triangulator."""
    bottom_left: np.ndarray
    bottom_right: np.ndarray
    top_left: np.ndarray
    top_right: np.ndarray
    unlocked_corners: np.ndarray
    corner_bottom_left: np.ndarray
    corner_bottom_right: np.ndarray
    corner_top_left: np.ndarray
    corner_top_right: np.ndarray
    left_full: np.ndarray
    right_full: np.ndarray
    top_full: np.ndarray
    bottom_full: np.ndarray
    positions: np.ndarray
    uvs: np.ndarray
    partial_policy: str
    subdivide_adjacent: bool

class Triangulation(NamedTuple):
    """The output of one triangulator: triangles, their source cells and any new vertices."""
    triangles: np.ndarray
    cell_ids: np.ndarray
    extra_positions: np.ndarray
    extra_uvs: np.ndarray

def _empty_triangulation() -> Triangulation:
    return Triangulation(
        triangles=np.zeros((0, 3), dtype=np.int64),
        cell_ids=np.zeros(0, dtype=np.int64),
        extra_positions=np.zeros((0, 3), dtype=np.float64),
        extra_uvs=np.zeros((0, 2), dtype=np.float64),
    )

def standard_quads(bl: np.ndarray, br: np.ndarray, tl: np.ndarray, tr: np.ndarray) -> np.ndarray:
    """
    Two triangles per quad, (bl, tl, br) then (tl, tr, br), interleaved so the
    pair of each quad stays together.
    """
    first = np.stack([bl, tl, br], axis=-1)
    second = np.stack([tl, tr, br], axis=-1)
    return np.stack([first, second], axis=1).reshape(-1, 3)

def single_triangles(cut: np.ndarray, bl: np.ndarray, br: np.ndarray, tl: np.ndarray, tr: np.ndarray) -> np.ndarray:
    """One triangle per cell, omitting the corner named by `cut`."""
    return np.select(
        [
            (cut == DROP_TOP_LEFT)[:, None],
            (cut == DROP_TOP_RIGHT)[:, None],
            (cut == DROP_BOTTOM_RIGHT)[:, None],
        ],
        [
            np.stack([br, bl, tr], axis=-1),
            np.stack([bl, tl, br], axis=-1),
            np.stack([bl, tl, tr], axis=-1),
        ],
        default=np.stack([tl, tr, br], axis=-1),
    )

def neighbor_cuts(ctx: CellContext) -> np.ndarray:
    """
    Cut chosen from the fully unlocked 4-neighbours. Pairs are tested in the
    order left+top, top+right, right+bottom, bottom+left; the first match wins.
    """
    return np.select(
        [
            ctx.left_full & ctx.top_full,
            ctx.top_full & ctx.right_full,
            ctx.right_full & ctx.bottom_full,
            ctx.bottom_full & ctx.left_full,
        ],
        [DROP_TOP_LEFT, DROP_TOP_RIGHT, DROP_BOTTOM_RIGHT, DROP_BOTTOM_LEFT],
        default=NO_CUT,
    )

def corner_cuts(ctx: CellContext) -> np.ndarray:
    """
    Cut chosen from the cell's own corners: with exactly one corner locked,
    keep the triangle around it and drop the opposite corner.
    """
    three = ctx.unlocked_corners == 3
    return np.select(
        [
            three & ~ctx.corner_bottom_right,
            three & ~ctx.corner_bottom_left,
            three & ~ctx.corner_top_left,
            three & ~ctx.corner_top_right,
        ],
        [DROP_TOP_LEFT, DROP_TOP_RIGHT, DROP_BOTTOM_RIGHT, DROP_BOTTOM_LEFT],
        default=NO_CUT,
    )

def _triangulate_hole(ctx: CellContext, cells: np.ndarray, first_extra_index: int) -> Triangulation:
    return _empty_triangulation()

def _triangulate_quad(ctx: CellContext, cells: np.ndarray, first_extra_index: int) -> Triangulation:
    triangles = standard_quads(ctx.bottom_left[cells], ctx.bottom_right[cells],
                               ctx.top_left[cells], ctx.top_right[cells])
    return _empty_triangulation()._replace(triangles=triangles, cell_ids=np.repeat(cells, 2))

def _triangulate_partial(ctx: CellContext, cells: np.ndarray, first_extra_index: int) -> Triangulation:
    cuts = corner_cuts(ctx) if ctx.partial_policy == 'corner' else neighbor_cuts(ctx)
    cuts = cuts[cells]

    cut_cells = cells[cuts != NO_CUT]
    quad_cells = cells[cuts == NO_CUT]

    cut_triangles = single_triangles(
        cuts[cuts != NO_CUT],
        ctx.bottom_left[cut_cells], ctx.bottom_right[cut_cells],
        ctx.top_left[cut_cells], ctx.top_right[cut_cells],
    )
    quad = _triangulate_quad(ctx, quad_cells, first_extra_index)
    return quad._replace(
        triangles=np.concatenate([cut_triangles.reshape(-1, 3), quad.triangles]),
        cell_ids=np.concatenate([cut_cells, quad.cell_ids]),
    )

def _triangulate_adjacent(ctx: CellContext, cells: np.ndarray, first_extra_index: int) -> Triangulation:
    if not ctx.subdivide_adjacent:
        return _triangulate_quad(ctx, cells, first_extra_index)
    return subdivide_quads(ctx, cells, first_extra_index)

def subdivide_quads(ctx: CellContext, cells: np.ndarray, first_extra_index: int) -> Triangulation:
    """
    Splits each quad into 4 sub-quads through its edge midpoints and centre.
    Adds 5 vertices and emits 8 triangles per cell, all with the standard winding.
    """
    bl, br = ctx.bottom_left[cells], ctx.bottom_right[cells]
    tl, tr = ctx.top_left[cells], ctx.top_right[cells]

    def midpoints(attribute):
        a_bl, a_br, a_tl, a_tr = attribute[bl], attribute[br], attribute[tl], attribute[tr]
        bottom = (a_bl + a_br) * 0.5
        top = (a_tl + a_tr) * 0.5
        return np.stack([
            bottom,
            (a_br + a_tr) * 0.5,
            top,
            (a_bl + a_tl) * 0.5,
            (bottom + top) * 0.5,
        ], axis=1)

    extra_positions = midpoints(ctx.positions).reshape(-1, 3)
    extra_uvs = midpoints(ctx.uvs).reshape(-1, 2)

    base = first_extra_index + np.arange(len(cells)) * SUBDIVISION_VERTEX_COUNT
    bottom_mid, right_mid, top_mid, left_mid, center = (base + k for k in range(SUBDIVISION_VERTEX_COUNT))

    # Each row of sub-quads is (bottom_left, bottom_right, top_left, top_right).
    sub_quads = np.stack([
        standard_quads(bl, bottom_mid, left_mid, center).reshape(-1, 2, 3),
        standard_quads(bottom_mid, br, center, right_mid).reshape(-1, 2, 3),
        standard_quads(center, right_mid, top_mid, tr).reshape(-1, 2, 3),
        standard_quads(left_mid, center, tl, top_mid).reshape(-1, 2, 3),
    ], axis=1)

    return Triangulation(
        triangles=sub_quads.reshape(-1, 3),
        cell_ids=np.repeat(cells, 8),
        extra_positions=extra_positions,
        extra_uvs=extra_uvs,
    )

# Triangulator per cell class. Applied in this order, which fixes the order
# of any extra vertices appended after the base grid.
TRIANGULATORS: dict[CellClass, Callable[[CellContext, np.ndarray, int], Triangulation]] = {
    CellClass.FULL_UNLOCKED: _triangulate_hole,
    CellClass.FULL_LOCKED: _triangulate_quad,
    CellClass.PARTIAL_UNLOCKED: _triangulate_partial,
    CellClass.ADJACENT_UNLOCKED: _triangulate_adjacent,
}

def compute_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Smooth per-vertex normals: area-weighted face normals summed per vertex and
    normalised. Vertices no triangle references point straight up.
    """
    normals = np.zeros(vertices.shape, dtype=np.float64)
    if len(triangles):
        v = vertices.astype(np.float64)
        v0, v1, v2 = v[triangles[:, 0]], v[triangles[:, 1]], v[triangles[:, 2]]
        face_normals = np.cross(v1 - v0, v2 - v0)
        for k in range(3):
            np.add.at(normals, triangles[:, k], face_normals)

    lengths = np.linalg.norm(normals, axis=1)
    unit = np.zeros_like(normals)
    unit[:, 1] = 1.0
    referenced = lengths > 1e-12
    unit[referenced] = normals[referenced] / lengths[referenced, None]
    return unit.astype(np.float32)

class TileMeshBuilder:
    """Builds the fog mesh of one tile from a classified window."""

    def __init__(self, classifier: CellClassifier, cell_size: float,
                 partial_policy: str = DEFAULTS.DEFAULT_PARTIAL_POLICY,
                 subdivide_adjacent: bool = DEFAULTS.DEFAULT_SUBDIVIDE_ADJACENT,
                 logger: logging.Logger = None):
        self.classifier = classifier
        self.cell_size = cell_size
        self.partial_policy = partial_policy
        self.subdivide_adjacent = subdivide_adjacent
        self.logger = logger or logging.getLogger(__name__)

    def build(self, start_x: int, start_z: int, count_x: int, count_z: int,
              mesh: TileMesh = None) -> tuple[TileMesh, CellWindow]:
        """
        Classifies the window and writes its mesh.

        Args:
            start_x, start_z: Global display-cell index of the window origin.
            count_x, count_z: Window size in cells. Zero or less yields an empty mesh.
            mesh (TileMesh, optional): Mesh to rewrite in place. A new one is
                created if None.

        Returns:
            (mesh, window): the written mesh and the classification it used.
        """
        window = self.classifier.classify_window(start_x, start_z, count_x, count_z)
        mesh = mesh if mesh is not None else TileMesh()
        self.build_from_window(window, mesh)
        return mesh, window

    def build_from_window(self, window: CellWindow, mesh: TileMesh) -> TileMesh:
        mesh.clear()
        if window.is_empty:
            self.logger.debug(f"Empty window at ({window.start_x}, {window.start_z}); mesh left empty.")
            return mesh

        count_x, count_z = window.count_x, window.count_z

        # --- 1. Base vertex grid, row-major [z, x] ---
        lz, lx = np.mgrid[0:count_z + 1, 0:count_x + 1]
        positions = np.stack([
            (window.start_x + lx) * self.cell_size,
            window.corner_heights,
            (window.start_z + lz) * self.cell_size,
        ], axis=-1).reshape(-1, 3).astype(np.float64)
        uvs = np.stack([lx / count_x, lz / count_z], axis=-1).reshape(-1, 2).astype(np.float64)
        encoding = np.where(
            window.corner_unlocked.reshape(-1, 1),
            np.array(DEFAULTS.UNLOCKED_ENCODING),
            np.array(DEFAULTS.LOCKED_ENCODING),
        )

        # --- 2. Per-cell context ---
        ctx = self._cell_context(window, positions, uvs)
        flat_classes = window.classes.ravel()

        # --- 3. Triangulate every class with its strategy ---
        next_index = len(positions)
        triangle_parts, cell_parts = [], []
        extra_positions, extra_uvs, extra_classes = [], [], []
        for cell_class, triangulate in TRIANGULATORS.items():
            cells = np.flatnonzero(flat_classes == cell_class)
            if len(cells) == 0:
                continue
            result = triangulate(ctx, cells, next_index)
            triangle_parts.append(result.triangles.reshape(-1, 3))
            cell_parts.append(result.cell_ids)
            if len(result.extra_positions):
                extra_positions.append(result.extra_positions)
                extra_uvs.append(result.extra_uvs)
                extra_classes.append(np.full(len(result.extra_positions), cell_class, dtype=np.int8))
                next_index += len(result.extra_positions)

        triangles = np.concatenate(triangle_parts) if triangle_parts else np.zeros((0, 3), dtype=np.int64)
        cell_ids = np.concatenate(cell_parts) if cell_parts else np.zeros(0, dtype=np.int64)
        # Stable sort restores row-major cell order across the strategies.
        triangles = triangles[np.argsort(cell_ids, kind='stable')]

        base_classes = vertex_classes(window).ravel()
        if extra_positions:
            extra_count = sum(len(p) for p in extra_positions)
            positions = np.concatenate([positions] + extra_positions)
            uvs = np.concatenate([uvs] + extra_uvs)
            encoding = np.concatenate([encoding, np.tile(np.array(DEFAULTS.LOCKED_ENCODING), (extra_count, 1))])
            base_classes = np.concatenate([base_classes] + extra_classes)

        # --- 4. Write buffers, then derived normals and bounds ---
        mesh.vertices = positions.astype(np.float32)
        mesh.uvs = uvs.astype(np.float32)
        mesh.unlock_encoding = encoding.astype(np.float32)
        mesh.triangles = triangles.astype(np.int32)
        mesh.vertex_classes = base_classes.astype(np.int8)
        mesh.grid_shape = (count_x + 1, count_z + 1)
        mesh.normals = compute_normals(mesh.vertices, mesh.triangles)
        mesh.bounds_min = mesh.vertices.min(axis=0)
        mesh.bounds_max = mesh.vertices.max(axis=0)

        self.logger.debug(
            f"Built tile mesh at ({window.start_x}, {window.start_z}): "
            f"{mesh.vertex_count} vertices, {mesh.triangle_count} triangles"
        )
        return mesh

    def _cell_context(self, window: CellWindow, positions: np.ndarray, uvs: np.ndarray) -> CellContext:
        count_x, count_z = window.count_x, window.count_z
        index = np.arange((count_x + 1) * (count_z + 1)).reshape(count_z + 1, count_x + 1)
        corners = window.corner_unlocked
        left, right, top, bottom = neighbor_full_unlocked(window)
        return CellContext(
            bottom_left=index[:-1, :-1].ravel(),
            bottom_right=index[:-1, 1:].ravel(),
            top_left=index[1:, :-1].ravel(),
            top_right=index[1:, 1:].ravel(),
            unlocked_corners=unlocked_corner_counts(corners).ravel(),
            corner_bottom_left=corners[:-1, :-1].ravel(),
            corner_bottom_right=corners[:-1, 1:].ravel(),
            corner_top_left=corners[1:, :-1].ravel(),
            corner_top_right=corners[1:, 1:].ravel(),
            left_full=left.ravel(),
            right_full=right.ravel(),
            top_full=top.ravel(),
            bottom_full=bottom.ravel(),
            positions=positions,
            uvs=uvs,
            partial_policy=self.partial_policy,
            subdivide_adjacent=self.subdivide_adjacent,
        )
