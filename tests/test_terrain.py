import numpy as np

from fog_generator.terrain import DEFAULT_VERTEX, TerrainDataReader, TerrainType, display_to_data_index

def test_grid_dimensions(locked_terrain):
    assert locked_terrain.data_grid_count_x == 10
    assert locked_terrain.data_grid_count_z == 10
    assert locked_terrain.vertex_count_x == 11
    assert locked_terrain.height_grid.shape == (11, 11)

def test_out_of_range_reads_default(locked_terrain):
    assert locked_terrain.vertex_at(-1, 0) == DEFAULT_VERTEX
    assert locked_terrain.vertex_at(0, 11) == DEFAULT_VERTEX
    assert DEFAULT_VERTEX.height == 0.0
    assert not DEFAULT_VERTEX.unlocked

def test_cell_corners_flags_out_of_range(locked_terrain):
    ok, corners = locked_terrain.cell_corners(10, 0)
    assert not ok
    assert corners == (DEFAULT_VERTEX,) * 4

    ok, corners = locked_terrain.cell_corners(2, 3)
    assert ok
    assert corners[0] == locked_terrain.vertex_at(2, 3)
    assert corners[2] == locked_terrain.vertex_at(3, 4)

def test_threshold_above_one_disables_initial_unlocks(locked_terrain):
    stats = locked_terrain.statistics()
    assert stats['unlocked_corners'] == 0
    assert stats['total_corners'] == 121
    assert stats['terrain_counts']['unlocked'] == 0

def test_unlock_cell_marks_its_four_corners(locked_terrain):
    assert locked_terrain.unlock_cell(3, 6)
    for x, z in ((3, 6), (4, 6), (4, 7), (3, 7)):
        vertex = locked_terrain.vertex_at(x, z)
        assert vertex.unlocked
        assert vertex.terrain_type == TerrainType.UNLOCKED
        assert vertex.height == 0.0
    assert not locked_terrain.vertex_at(5, 6).unlocked
    assert locked_terrain.statistics()['unlocked_corners'] == 4

def test_unlock_cell_out_of_range(locked_terrain):
    assert not locked_terrain.unlock_cell(10, 10)
    assert not locked_terrain.unlock_cell(-1, 0)
    assert locked_terrain.statistics()['unlocked_corners'] == 0

def test_unlock_area_is_circular(locked_terrain):
    affected = locked_terrain.unlock_area(5.0, 5.0, 1.0)
    assert affected == (4, 4, 6, 6)
    # Centre and the 4-neighbours are inside radius 1, the diagonals are not.
    ok, corners = locked_terrain.cell_corners(5, 5)
    assert all(c.unlocked for c in corners)
    ok, corners = locked_terrain.cell_corners(4, 4)
    assert not all(c.unlocked for c in corners)

def test_unlock_area_outside_map(locked_terrain):
    assert locked_terrain.unlock_area(-100.0, -100.0, 2.0) is None
    assert locked_terrain.statistics()['unlocked_corners'] == 0

def test_display_to_data_index_rounds_to_nearest():
    assert int(display_to_data_index(0, 1.0, 5.0)) == 0
    assert int(display_to_data_index(2, 1.0, 5.0)) == 0
    assert int(display_to_data_index(3, 1.0, 5.0)) == 1
    assert int(display_to_data_index(7, 1.0, 5.0)) == 1
    assert int(display_to_data_index(8, 1.0, 5.0)) == 2
    np.testing.assert_array_equal(display_to_data_index(np.array([0, 5, 10]), 1.0, 5.0), [0, 1, 2])

def test_sample_display_corners_matches_single_lookups(logger):
    terrain = TerrainDataReader({"map_width": 40.0, "map_height": 40.0, "data_cell_size": 5.0, "seed": 3}, logger)
    heights, unlocked = terrain.sample_display_corners(-2, 30, 8, 16, 1.0)
    assert heights.shape == (16, 8)
    for lz in range(16):
        for lx in range(8):
            vertex = terrain.vertex_at_display(-2 + lx, 30 + lz, 1.0)
            assert heights[lz, lx] == vertex.height
            assert unlocked[lz, lx] == vertex.is_revealed

def test_generation_is_deterministic(logger):
    config = {"map_width": 60.0, "map_height": 60.0, "data_cell_size": 5.0, "seed": 99}
    first = TerrainDataReader(dict(config), logger)
    second = TerrainDataReader(dict(config), logger)
    np.testing.assert_array_equal(first.height_grid, second.height_grid)
    np.testing.assert_array_equal(first.type_grid, second.type_grid)
    assert first.statistics() == second.statistics()

def test_default_generation_stats_are_consistent(logger):
    terrain = TerrainDataReader({"map_width": 100.0, "map_height": 100.0}, logger)
    stats = terrain.statistics()
    assert sum(stats['terrain_counts'].values()) == stats['total_corners']
    assert stats['terrain_counts']['unlocked'] == stats['unlocked_corners']
    assert 0.0 <= stats['unlocked_ratio'] <= 1.0

def test_grids_are_read_only(locked_terrain):
    assert not locked_terrain.height_grid.flags.writeable
    assert not locked_terrain.type_grid.flags.writeable

def test_height_at_world_uses_nearest_data_corner(logger):
    terrain = TerrainDataReader({"map_width": 40.0, "map_height": 40.0, "data_cell_size": 5.0, "seed": 3}, logger)
    assert terrain.height_at_world(12.4, 7.6) == terrain.vertex_at(2, 2).height
    assert terrain.height_at_world(12.6, 2.4) == terrain.vertex_at(3, 0).height
    assert terrain.height_at_world(40.0, 40.0) == terrain.vertex_at(8, 8).height
    assert terrain.height_at_world(-10.0, 5.0) == 0.0
    assert terrain.height_at_world(5.0, 60.0) == 0.0
