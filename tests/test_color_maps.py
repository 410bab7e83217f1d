import numpy as np

from fog_generator import color_maps
from fog_generator.classifier import CellClass
from fog_generator.noise import create_permutation_table, sample_noise_01

def test_class_colors_are_transposed_for_surfarray():
    classes = np.zeros((3, 5), dtype=np.int8)
    classes[2, 4] = CellClass.FULL_UNLOCKED
    colors = color_maps.get_class_color_array(classes, color_maps.create_cell_class_lut())
    assert colors.shape == (5, 3, 3)
    assert tuple(colors[4, 2]) == (255, 255, 255)
    assert tuple(colors[0, 0]) == (0, 0, 0)

def test_terrain_lut_covers_every_type():
    lut = color_maps.create_terrain_lut()
    assert lut.shape == (len(color_maps.COLOR_MAP_TERRAIN), 3)
    assert lut.dtype == np.uint8

def test_flat_height_grid_does_not_divide_by_zero():
    colors = color_maps.get_height_color_array(np.full((4, 4), 3.0), color_maps.create_height_lut())
    assert colors.shape == (4, 4, 3)
    assert (colors == colors[0, 0]).all()

def test_noise_is_seeded_and_bounded():
    xs, zs = np.meshgrid(np.linspace(0.1, 20.0, 30), np.linspace(0.3, 15.0, 25))
    first = sample_noise_01(create_permutation_table(5), xs, zs, octaves=3)
    second = sample_noise_01(create_permutation_table(5), xs, zs, octaves=3)
    other = sample_noise_01(create_permutation_table(6), xs, zs, octaves=3)
    assert first.shape == (25, 30)
    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, other)
    assert first.min() >= 0.0 and first.max() <= 1.0
