# fog_generator/noise.py

"""
================================================================================
NOISE GENERATION UTILITIES
================================================================================
This module provides seeded 2D Perlin noise for the terrain data source. It is
designed to be a pure, stateless utility.

Data Contract:
---------------
- Inputs:
    - p: A doubled, pre-shuffled NumPy permutation table (512 ints), built by
      `create_permutation_table`.
    - x, z: NumPy arrays of sample coordinates (any matching shape).
    - octaves, persistence, lacunarity: Standard fractal noise parameters.
- Outputs:
    - `perlin_noise_2d`: noise values in roughly [-1, 1].
    - `sample_noise_01`: the same values remapped to [0, 1].
- Side Effects: None.
- Invariants: The output shape matches the input shape. Given the same table
  and coordinates the output is bit-identical.
================================================================================
"""

import numpy as np
from numba import njit

# Eight unit-ish gradient directions. Diagonals give rounder features than
# the axis-only set.
_GRADIENTS = np.array([
    [1.0, 0.0], [-1.0, 0.0], [0.0, 1.0], [0.0, -1.0],
    [0.7071, 0.7071], [-0.7071, 0.7071], [0.7071, -0.7071], [-0.7071, -0.7071],
])

def create_permutation_table(seed: int) -> np.ndarray:
    """Builds the doubled 512-entry permutation table for a seed."""
    p = np.arange(256, dtype=np.int64)
    rng = np.random.default_rng(seed)
    rng.shuffle(p)
    return np.concatenate([p, p])

@njit
def _fade(t):
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)

@njit
def _corner_dot(gradients, h, dx, dz):
    g = gradients[h & 7]
    return g[0] * dx + g[1] * dz

@njit
def _perlin_flat(p, gradients, xs, zs, octaves, persistence, lacunarity):
    out = np.zeros(xs.shape[0])
    for i in range(xs.shape[0]):
        total = 0.0
        amplitude = 1.0
        frequency = 1.0
        max_amplitude = 0.0

        for _ in range(octaves):
            x = xs[i] * frequency
            z = zs[i] * frequency
            x0 = int(np.floor(x))
            z0 = int(np.floor(z))
            fx = x - x0
            fz = z - z0

            xi = x0 & 255
            zi = z0 & 255
            h00 = p[p[xi] + zi]
            h10 = p[p[xi + 1] + zi]
            h01 = p[p[xi] + zi + 1]
            h11 = p[p[xi + 1] + zi + 1]

            u = _fade(fx)
            v = _fade(fz)
            bottom = _corner_dot(gradients, h00, fx, fz) + u * (
                _corner_dot(gradients, h10, fx - 1.0, fz) - _corner_dot(gradients, h00, fx, fz))
            top = _corner_dot(gradients, h01, fx, fz - 1.0) + u * (
                _corner_dot(gradients, h11, fx - 1.0, fz - 1.0) - _corner_dot(gradients, h01, fx, fz - 1.0))

            total += (bottom + v * (top - bottom)) * amplitude
            max_amplitude += amplitude
            amplitude *= persistence
            frequency *= lacunarity

        out[i] = total / max_amplitude
    return out

def perlin_noise_2d(p: np.ndarray, x: np.ndarray, z: np.ndarray,
                    octaves: int = 1, persistence: float = 0.5, lacunarity: float = 2.0) -> np.ndarray:
    """
    Fractal 2D Perlin noise, normalised by the summed octave amplitude so the
    result stays in roughly [-1, 1] for any octave count.
    The inner loop is JIT-compiled with Numba.
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    flat = _perlin_flat(p, _GRADIENTS, x.ravel(), z.ravel(), octaves, persistence, lacunarity)
    return flat.reshape(x.shape)

def sample_noise_01(p: np.ndarray, x: np.ndarray, z: np.ndarray, octaves: int = 1) -> np.ndarray:
    """Perlin noise remapped to [0, 1], the range the terrain thresholds expect."""
    values = perlin_noise_2d(p, x, z, octaves=octaves)
    return np.clip((values + 1.0) * 0.5, 0.0, 1.0)
