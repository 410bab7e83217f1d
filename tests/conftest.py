"""
Shared fixtures for the fog generator tests.

Most tests run on a 10x10 map whose data grid matches the display grid
(cell size 1, data cell size 1), with the noise unlock mask disabled so every
unlocked corner is placed explicitly.
"""

import logging

import numpy as np
import pytest

from fog_generator.terrain import DEFAULT_VERTEX, TerrainDataReader, TerrainVertex, display_to_data_index

SMALL_MAP_CONFIG = {
    "map_width": 10.0,
    "map_height": 10.0,
    "data_cell_size": 1.0,
    "unlock_threshold": 2.0,
    "seed": 7,
}

class GridTerrain:
    """A terrain source backed by explicit corner arrays, indexed [z, x]."""

    def __init__(self, unlocked, heights=None, data_cell_size=1.0):
        self.unlocked = np.asarray(unlocked, dtype=bool)
        vz, vx = self.unlocked.shape
        self.heights = np.zeros((vz, vx)) if heights is None else np.asarray(heights, dtype=np.float64)
        self.data_cell_size = data_cell_size
        self.map_width = (vx - 1) * data_cell_size
        self.map_height = (vz - 1) * data_cell_size
        self.data_grid_count_x = vx - 1
        self.data_grid_count_z = vz - 1

    def vertex_at(self, x, z):
        vz, vx = self.unlocked.shape
        if not (0 <= x < vx and 0 <= z < vz):
            return DEFAULT_VERTEX
        return TerrainVertex(height=float(self.heights[z, x]), unlocked=bool(self.unlocked[z, x]))

    def cell_corners(self, cell_x, cell_z):
        vz, vx = self.unlocked.shape
        if not (0 <= cell_x < vx - 1 and 0 <= cell_z < vz - 1):
            return False, (DEFAULT_VERTEX,) * 4
        return True, (
            self.vertex_at(cell_x, cell_z),
            self.vertex_at(cell_x + 1, cell_z),
            self.vertex_at(cell_x + 1, cell_z + 1),
            self.vertex_at(cell_x, cell_z + 1),
        )

    def vertex_at_display(self, x, z, cell_size):
        return self.vertex_at(
            int(display_to_data_index(x, cell_size, self.data_cell_size)),
            int(display_to_data_index(z, cell_size, self.data_cell_size)),
        )

    def sample_display_corners(self, start_x, start_z, count_x, count_z, cell_size):
        heights = np.zeros((count_z, count_x))
        unlocked = np.zeros((count_z, count_x), dtype=bool)
        for lz in range(count_z):
            for lx in range(count_x):
                vertex = self.vertex_at_display(start_x + lx, start_z + lz, cell_size)
                heights[lz, lx] = vertex.height
                unlocked[lz, lx] = vertex.is_revealed
        return heights, unlocked

def sloped_heights(size=11):
    zz, xx = np.mgrid[0:size, 0:size]
    return xx * 0.1 + zz * 0.2

@pytest.fixture
def logger():
    return logging.getLogger("fog_tests")

@pytest.fixture
def locked_terrain(logger):
    return TerrainDataReader(dict(SMALL_MAP_CONFIG), logger)

@pytest.fixture
def block_terrain(locked_terrain):
    """The centre 2x2 cells of the 10x10 map fully unlocked."""
    for cell_x in (4, 5):
        for cell_z in (4, 5):
            locked_terrain.unlock_cell(cell_x, cell_z)
    return locked_terrain

@pytest.fixture
def l_shape_terrain(locked_terrain):
    """Three unlocked cells forming an L; cell (5, 5) is the concave corner."""
    for cell_x, cell_z in ((4, 4), (5, 4), (4, 5)):
        locked_terrain.unlock_cell(cell_x, cell_z)
    return locked_terrain
