# fog_generator/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback internal constants for the fog mesh
generator. These values are used if they are not explicitly provided by the
user's configuration.

DO NOT MODIFY THIS FILE FOR A SPECIFIC MAP.
Instead, pass a configuration dictionary to the FogSystem instance.
================================================================================
"""

# --- Map Dimensions (world units, metres) ---
DEFAULT_MAP_WIDTH = 500.0
DEFAULT_MAP_HEIGHT = 500.0

# The edge length of one display cell. The fog mesh is triangulated on this grid.
DEFAULT_CELL_SIZE = 1.0
# The edge length of one terrain data cell. It can be coarser than the display
# grid to save memory; display corners are remapped by nearest neighbour.
DEFAULT_DATA_CELL_SIZE = 5.0

# --- Mesh Splitting ---
# The world footprint of one tile (one mesh). Should be a multiple of the cell size.
DEFAULT_MESH_WIDTH = 50.0
DEFAULT_MESH_HEIGHT = 50.0

# --- Frustum Culling ---
DEFAULT_ENABLE_FRUSTUM_CULLING = True
DEFAULT_GROUND_PLANE_HEIGHT = 0.0
# Distance added to the projected frustum bounds before tiles are selected.
# Absorbs popping at the screen edge and fast camera motion.
DEFAULT_CULLING_MARGIN = 10.0

# --- Classification & Triangulation Policies ---
# 'simple': corner count only (FullLocked / PartialUnlocked / FullUnlocked).
# 'ringed': corner count plus neighbour propagation, which adds the
#           AdjacentUnlocked ring around partially unlocked cells.
CLASSIFICATION_POLICIES = ('simple', 'ringed')
DEFAULT_CLASSIFICATION_POLICY = 'ringed'

# 'neighbor': a partial cell is cut diagonally when two adjacent neighbours are
#             fully unlocked.
# 'corner':   a partial cell is cut only when exactly 3 of its own corners are
#             unlocked.
PARTIAL_POLICIES = ('neighbor', 'corner')
DEFAULT_PARTIAL_POLICY = 'neighbor'

# Split AdjacentUnlocked cells into 4 sub-quads for smoother shading.
DEFAULT_SUBDIVIDE_ADJACENT = False

# --- Vertex Unlock Encoding ---
# A 2-component signal consumed by the fog shader. Not interpreted by the core.
UNLOCKED_ENCODING = (0.0, 1.0)
LOCKED_ENCODING = (1.0, 1.0)

# --- Terrain Generation ---
DEFAULT_SEED = 12345
DEFAULT_NOISE_SCALE = 0.01
# Corner heights are base_height + (noise - 0.5) * height_variation.
DEFAULT_BASE_HEIGHT = 5.0
DEFAULT_HEIGHT_VARIATION = 4.0

# Per-type height offsets added on top of the noise height.
TERRAIN_HEIGHT_OFFSETS = {
    "plain": 0.0,
    "hill": 1.0,
    "mountain": 2.0,
    "lake": -1.5,
    "forest": 0.5,
}

# Relative distribution of terrain types. Normalised at runtime.
TERRAIN_WEIGHTS = {
    "plain": 0.4,
    "hill": 0.25,
    "mountain": 0.15,
    "lake": 0.1,
    "forest": 0.1,
}

# Large offset used to decorrelate the terrain type noise from the height noise.
TERRAIN_TYPE_SEED_OFFSET = 7919.0

# --- Unlock Mask Generation ---
# A separate low-frequency noise decides which data cells start unlocked.
DEFAULT_UNLOCK_NOISE_SCALE = 0.1
DEFAULT_UNLOCK_NOISE_OFFSET = 10.0
# Cells whose unlock noise exceeds this value start unlocked (~40% of the map).
# Values above 1.0 disable the initial unlock mask entirely.
DEFAULT_UNLOCK_THRESHOLD = 0.6
# Unlocked corners sink to this height.
DEFAULT_UNLOCKED_HEIGHT = 0.0
