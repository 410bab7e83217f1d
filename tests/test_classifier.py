import numpy as np

from conftest import GridTerrain
from fog_generator.classifier import CellClass, CellClassifier, base_classes, neighbor_full_unlocked, vertex_classes

def make_classifier(terrain, policy='ringed'):
    return CellClassifier(terrain, 1.0, 10, 10, policy=policy)

def test_base_classes_count_corners():
    corners = np.array([
        [False, False, True],
        [False, True, True],
    ])
    np.testing.assert_array_equal(
        base_classes(corners),
        [[CellClass.PARTIAL_UNLOCKED, CellClass.PARTIAL_UNLOCKED]],
    )
    assert base_classes(np.ones((2, 2), dtype=bool))[0, 0] == CellClass.FULL_UNLOCKED
    assert base_classes(np.zeros((2, 2), dtype=bool))[0, 0] == CellClass.FULL_LOCKED

def test_locked_map_is_all_full_locked(locked_terrain):
    window = make_classifier(locked_terrain).classify_map()
    assert window.classes.shape == (10, 10)
    assert (window.classes == CellClass.FULL_LOCKED).all()

def test_unlocked_block_and_its_rings(block_terrain):
    classes = make_classifier(block_terrain).classify_map().classes

    # Centre 2x2 is a hole.
    assert (classes[4:6, 4:6] == CellClass.FULL_UNLOCKED).all()

    # The ring around it shares at least one unlocked corner.
    ring = classes[3:7, 3:7].copy()
    ring[1:3, 1:3] = CellClass.PARTIAL_UNLOCKED
    assert (ring == CellClass.PARTIAL_UNLOCKED).all()

    # Cells edge-adjacent to the partial ring become adjacent-unlocked.
    assert (classes[3:7, 2] == CellClass.ADJACENT_UNLOCKED).all()
    assert (classes[3:7, 7] == CellClass.ADJACENT_UNLOCKED).all()
    assert (classes[2, 3:7] == CellClass.ADJACENT_UNLOCKED).all()
    assert (classes[7, 3:7] == CellClass.ADJACENT_UNLOCKED).all()

    # Diagonal neighbours of the ring do not propagate.
    assert classes[2, 2] == CellClass.FULL_LOCKED
    assert classes[0, 0] == CellClass.FULL_LOCKED

    counts = np.bincount(classes.ravel(), minlength=4)
    assert counts.tolist() == [68, 16, 12, 4]

def test_simple_policy_has_no_adjacent_ring(block_terrain):
    classes = make_classifier(block_terrain, policy='simple').classify_map().classes
    assert not (classes == CellClass.ADJACENT_UNLOCKED).any()
    assert classes[4, 2] == CellClass.FULL_LOCKED
    assert classes[4, 3] == CellClass.PARTIAL_UNLOCKED

def test_classification_is_idempotent(block_terrain):
    classifier = make_classifier(block_terrain)
    first = classifier.classify_window(2, 1, 6, 7)
    second = classifier.classify_window(2, 1, 6, 7)
    np.testing.assert_array_equal(first.classes, second.classes)
    np.testing.assert_array_equal(first.corner_unlocked, second.corner_unlocked)

def test_windows_agree_with_whole_map(block_terrain):
    classifier = make_classifier(block_terrain)
    whole = classifier.classify_map().classes
    # Split right through the unlocked block, so every window needs its halo.
    for start_x, start_z, count_x, count_z in ((0, 0, 5, 10), (5, 0, 5, 10), (0, 0, 10, 5), (3, 3, 2, 2)):
        window = classifier.classify_window(start_x, start_z, count_x, count_z)
        np.testing.assert_array_equal(
            window.classes,
            whole[start_z:start_z + count_z, start_x:start_x + count_x],
        )

def test_cells_outside_map_are_full_locked(block_terrain):
    classifier = make_classifier(block_terrain)
    assert classifier.classify_cell(-1, 4) == CellClass.FULL_LOCKED
    assert classifier.classify_cell(10, 4) == CellClass.FULL_LOCKED
    assert classifier.classify_cell(4, 4) == CellClass.FULL_UNLOCKED
    assert classifier.classify_cell(3, 4) == CellClass.PARTIAL_UNLOCKED

def test_edge_window_halo_is_locked_outside_map():
    # Every corner unlocked: cells beyond the edge must still count as locked.
    terrain = GridTerrain(np.ones((11, 11), dtype=bool))
    window = make_classifier(terrain).classify_window(0, 0, 10, 10)
    assert (window.classes == CellClass.FULL_UNLOCKED).all()
    assert (window.halo_classes[0, :] == CellClass.FULL_LOCKED).all()
    assert (window.halo_classes[:, -1] == CellClass.FULL_LOCKED).all()

def test_unlocking_never_lowers_a_class(block_terrain):
    classifier = make_classifier(block_terrain)
    before = classifier.classify_map().classes.copy()
    block_terrain.unlock_cell(7, 7)
    block_terrain.unlock_cell(1, 8)
    after = classifier.classify_map().classes
    assert (after >= before).all()
    assert (after != before).any()

def test_vertex_classes_take_the_highest_neighbour(block_terrain):
    window = make_classifier(block_terrain).classify_map()
    corners = vertex_classes(window)
    assert corners.shape == (11, 11)
    assert corners[4, 4] == CellClass.FULL_UNLOCKED
    assert corners[4, 2] == CellClass.ADJACENT_UNLOCKED
    assert corners[4, 3] == CellClass.PARTIAL_UNLOCKED
    assert corners[0, 0] == CellClass.FULL_LOCKED

def test_neighbor_flags(block_terrain):
    window = make_classifier(block_terrain).classify_map()
    left, right, top, bottom = neighbor_full_unlocked(window)
    # Cell (x=3, z=4) sits left of the unlocked block.
    assert right[4, 3] and not left[4, 3] and not top[4, 3] and not bottom[4, 3]
    # Cell (x=4, z=6) sits above it.
    assert bottom[6, 4] and not top[6, 4]

def test_cell_record(block_terrain):
    window = make_classifier(block_terrain).classify_window(3, 3, 4, 4)
    cell = window.cell(0, 1)
    assert (cell.global_x, cell.global_z) == (3, 4)
    assert cell.cell_class == CellClass.PARTIAL_UNLOCKED
    assert not cell.bottom_left_unlocked
    assert cell.bottom_right_unlocked
    assert cell.top_right_unlocked
    assert not cell.top_left_unlocked

def test_empty_window(block_terrain):
    window = make_classifier(block_terrain).classify_window(0, 0, 0, 5)
    assert window.is_empty
    assert window.classes.size == 0

def test_off_map_cells_agree_with_terrain_corner_flag():
    # Display grid equals data grid here, so both edge rules must coincide.
    terrain = GridTerrain(np.ones((11, 11), dtype=bool))
    classifier = make_classifier(terrain)
    for cell_z in range(-1, 12):
        for cell_x in range(-1, 12):
            ok, _ = terrain.cell_corners(cell_x, cell_z)
            expected = CellClass.FULL_UNLOCKED if ok else CellClass.FULL_LOCKED
            assert classifier.classify_cell(cell_x, cell_z) == expected
