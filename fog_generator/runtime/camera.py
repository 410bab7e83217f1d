# fog_generator/runtime/camera.py

import math

import numpy as np

# Used as the up hint when the camera looks straight along the world up axis.
_WORLD_UP = np.array([0.0, 1.0, 0.0])
_FALLBACK_UP = np.array([0.0, 0.0, 1.0])

class PerspectiveCamera:
    """
    A minimal pinhole camera with y up. Satisfies the culler's `Camera`
    protocol; the viewer drives it from keyboard input.
    """
    def __init__(self, position, forward=(0.0, -1.0, 0.0), fov_degrees: float = 60.0,
                 aspect: float = 16.0 / 9.0, near_clip: float = 0.3, far_clip: float = 1000.0):
        self.position = np.asarray(position, dtype=np.float64)
        self.fov_degrees = fov_degrees
        self.aspect = aspect
        self.near_clip = near_clip
        self.far_clip = far_clip
        self.set_forward(forward)

    @classmethod
    def top_down(cls, x: float, z: float, height: float, **kwargs) -> 'PerspectiveCamera':
        """A camera hovering at `height` above (x, z) and looking straight down."""
        return cls(position=(x, height, z), forward=(0.0, -1.0, 0.0), **kwargs)

    def set_forward(self, forward):
        forward = np.asarray(forward, dtype=np.float64)
        self.forward = forward / np.linalg.norm(forward)

        up_hint = _WORLD_UP
        if abs(float(np.dot(self.forward, up_hint))) > 0.999:
            up_hint = _FALLBACK_UP

        right = np.cross(up_hint, self.forward)
        self.right = right / np.linalg.norm(right)
        self.up = np.cross(self.forward, self.right)

    def look_at(self, target):
        self.set_forward(np.asarray(target, dtype=np.float64) - self.position)

    def move(self, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0):
        self.position = self.position + np.array([dx, dy, dz])

    def viewport_to_world(self, u: float, v: float, depth: float) -> np.ndarray:
        """
        The world point at `depth` along the view axis for viewport
        coordinates (u, v) in [0, 1], with (0, 0) at the bottom left.
        """
        half_height = depth * math.tan(math.radians(self.fov_degrees) * 0.5)
        half_width = half_height * self.aspect
        return (
            self.position
            + self.forward * depth
            + self.right * (2.0 * u - 1.0) * half_width
            + self.up * (2.0 * v - 1.0) * half_height
        )
