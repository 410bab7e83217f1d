import numpy as np

from fog_generator.runtime.camera import PerspectiveCamera

def test_top_down_basis_is_orthonormal():
    camera = PerspectiveCamera.top_down(10.0, 20.0, 30.0)
    np.testing.assert_allclose(camera.position, [10.0, 30.0, 20.0])
    np.testing.assert_allclose(camera.forward, [0.0, -1.0, 0.0])
    basis = np.stack([camera.right, camera.up, camera.forward])
    np.testing.assert_allclose(basis @ basis.T, np.eye(3), atol=1e-12)

def test_viewport_centre_lies_on_the_view_axis():
    camera = PerspectiveCamera((0.0, 5.0, 0.0), forward=(0.0, -1.0, 1.0))
    point = camera.viewport_to_world(0.5, 0.5, 10.0)
    np.testing.assert_allclose(point, camera.position + camera.forward * 10.0)

def test_viewport_corners_span_the_fov():
    camera = PerspectiveCamera.top_down(0.0, 0.0, 10.0, fov_degrees=90.0, aspect=2.0)
    bottom_left = camera.viewport_to_world(0.0, 0.0, 10.0)
    top_right = camera.viewport_to_world(1.0, 1.0, 10.0)
    extent = np.abs(top_right - bottom_left)
    # Width is aspect times height; both lie in the ground plane.
    assert sorted(np.round(extent, 6).tolist()) == [0.0, 20.0, 40.0]

def test_move_and_look_at():
    camera = PerspectiveCamera((0.0, 10.0, 0.0), forward=(0.0, 0.0, 1.0))
    camera.move(dx=5.0, dz=-2.0)
    np.testing.assert_allclose(camera.position, [5.0, 10.0, -2.0])
    camera.look_at((5.0, 0.0, -2.0))
    np.testing.assert_allclose(camera.forward, [0.0, -1.0, 0.0])
    assert np.isfinite(camera.right).all()
