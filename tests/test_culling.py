import numpy as np

from fog_generator.culling import FrustumCuller, ray_ground_intersection
from fog_generator.runtime.camera import PerspectiveCamera

def make_culler(margin=10.0):
    return FrustumCuller(10, 10, 50.0, 50.0, ground_plane_height=0.0, margin=margin)

def overhead_camera(x=125.0, z=125.0, height=30.0):
    # fov 90 at height 30 sees a 60x60 ground footprint.
    return PerspectiveCamera.top_down(x, z, height, fov_degrees=90.0, aspect=1.0)

def test_ground_points_order_and_footprint():
    points = make_culler().frustum_ground_points(overhead_camera())
    expected = [[95.0, 95.0], [155.0, 95.0], [155.0, 155.0], [95.0, 155.0]]
    np.testing.assert_allclose(points, expected, atol=1e-6)

def test_footprint_with_margin_selects_three_by_three():
    culler = make_culler()
    transitions = culler.update(overhead_camera())
    assert culler.last_visible_range == (1, 1, 3, 3)
    assert culler.active_count() == 9
    assert len(transitions) == 9
    assert all(active for _, _, active in transitions)
    assert culler.is_active(2, 2)
    assert not culler.is_active(0, 0)
    assert not culler.is_active(4, 2)

def test_alignment_changes_block_size():
    culler = make_culler(margin=0.0)
    culler.update(overhead_camera(x=100.0, z=100.0))
    # Footprint [70, 130] covers tiles 1 and 2 on each axis.
    assert culler.last_visible_range == (1, 1, 2, 2)
    assert culler.active_count() == 4

def test_every_tile_overlapping_the_footprint_is_active():
    culler = make_culler()
    camera = overhead_camera(x=212.0, z=331.0, height=47.0)
    culler.update(camera)
    points = culler.last_ground_points
    min_x, min_z = points.min(axis=0) - culler.margin
    max_x, max_z = points.max(axis=0) + culler.margin
    for tile_z in range(10):
        for tile_x in range(10):
            overlaps = (tile_x * 50.0 <= max_x and (tile_x + 1) * 50.0 > min_x
                        and tile_z * 50.0 <= max_z and (tile_z + 1) * 50.0 > min_z)
            assert culler.is_active(tile_x, tile_z) == overlaps

def test_second_update_does_not_toggle():
    culler = make_culler()
    camera = overhead_camera()
    calls = []
    culler.add_listener(lambda tx, tz, active: calls.append((tx, tz, active)))
    culler.update(camera)
    assert len(calls) == 9
    assert culler.update(camera) == []
    assert len(calls) == 9

def test_moving_camera_only_flips_changed_tiles():
    culler = make_culler()
    culler.update(overhead_camera(x=125.0))
    transitions = culler.update(overhead_camera(x=175.0))
    # Range moves from x 1..3 to x 2..4: column 1 off, column 4 on.
    assert sorted(transitions) == sorted(
        [(1, tz, False) for tz in (1, 2, 3)] + [(4, tz, True) for tz in (1, 2, 3)]
    )
    assert culler.active_count() == 9

def test_footprint_outside_map_deactivates_everything():
    culler = make_culler()
    culler.update(overhead_camera())
    culler.update(overhead_camera(x=-500.0, z=-500.0))
    assert culler.last_visible_range is None
    assert culler.active_count() == 0

def test_range_is_clamped_at_map_edge():
    culler = make_culler()
    culler.update(overhead_camera(x=480.0, z=15.0))
    assert culler.last_visible_range == (8, 0, 9, 1)

def test_ray_fallbacks():
    origin = np.array([0.0, 10.0, 0.0])
    np.testing.assert_allclose(ray_ground_intersection(origin, np.array([0.0, -1.0, 0.0]), 0.0, 100.0), [0.0, 0.0, 0.0])
    # Parallel to the ground.
    np.testing.assert_allclose(ray_ground_intersection(origin, np.array([1.0, 0.0, 0.0]), 0.0, 100.0), [100.0, 10.0, 0.0])
    # Pointing away from the ground.
    np.testing.assert_allclose(ray_ground_intersection(origin, np.array([0.0, 1.0, 0.0]), 0.0, 100.0), [0.0, 110.0, 0.0])

def test_horizon_camera_never_fails():
    culler = make_culler()
    camera = PerspectiveCamera((250.0, 10.0, 250.0), forward=(0.0, 0.0, 1.0), fov_degrees=60.0,
                               aspect=1.0, far_clip=100.0)
    culler.update(camera)
    assert np.isfinite(culler.last_ground_points).all()
    assert culler.is_active(5, 5)

def test_set_all_active():
    culler = make_culler()
    assert len(culler.set_all_active(True)) == 100
    assert culler.active_count() == 100
    assert culler.set_all_active(True) == []

def test_out_of_range_tile_is_inactive():
    culler = make_culler()
    culler.set_all_active(True)
    assert not culler.is_active(-1, 0)
    assert not culler.is_active(10, 0)
