"""Random streams and precomputed sampling tables.

Randomness in a render comes from exactly one place: a NumPy
``Generator`` created from the render seed. It draws the host-side
tables (cosine-weighted direction table, shuffled stratum sequences,
points on emitters) and seeds one independent in-kernel stream per pixel.
Pixels traced in parallel therefore never share mutable random state.

Kernels do not call ``ti.random()``: its state belongs to the Taichi
runtime and is seeded only by ``ti.init(random_seed=...)``, so it cannot
be owned, reseeded or replayed per render. Each pixel's stream is instead
a 31-bit linear congruential generator held in a Taichi field; the top
24 bits of each state become a float in [0, 1).

Example:
    >>> import numpy as np
    >>> rng = np.random.default_rng(7)
    >>> table = build_cosine_table(rng, rays_per_pixel=2, samples_per_stratum=20)
    >>> table.shape
    (80, 3)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Linear congruential generator constants (modulus 2^31)
LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF

# 2^-24, maps a 24-bit integer into [0, 1)
_INV_2_24 = 1.0 / 16777216.0


# =============================================================================
# In-kernel Random Streams
# =============================================================================


@ti.func
def lcg_next(state: ti.i32) -> ti.i32:
    """Advance a stream state by one step."""
    return (state * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK


@ti.func
def lcg_to_unit_float(state: ti.i32) -> ti.f32:
    """Convert a stream state into a float in [0, 1)."""
    return ti.cast(state >> 7, ti.f32) * _INV_2_24


def make_stream_seeds(rng: np.random.Generator, shape: tuple[int, ...]) -> npt.NDArray[np.int32]:
    """Draw non-zero 31-bit seeds for a grid of streams.

    Args:
        rng: The render's random generator.
        shape: Shape of the stream grid.

    Returns:
        An int32 array of seeds in [1, 2^31 - 1).
    """
    return rng.integers(1, LCG_MASK, size=shape, dtype=np.int32)


@ti.data_oriented
class RandomStreams:
    """A grid of independent uniform random streams, one per pixel.

    Each stream is addressed by its (row, column) and must only be advanced
    by the thread that owns that pixel.

    Attributes:
        shape: The (rows, columns) shape of the stream grid.
        state: Taichi i32 field holding the current state of every stream.
    """

    def __init__(self, shape: tuple[int, int], rng: np.random.Generator) -> None:
        self.shape = shape
        self.state = ti.field(dtype=ti.i32, shape=shape)
        self.reseed(rng)

    def reseed(self, rng: np.random.Generator) -> None:
        """Restart every stream from fresh seeds drawn from rng."""
        self.state.from_numpy(make_stream_seeds(rng, self.shape))

    @ti.func
    def uniform(self, row: ti.i32, col: ti.i32) -> ti.f32:
        """Draw the next float in [0, 1) from the stream at (row, col)."""
        state = lcg_next(self.state[row, col])
        self.state[row, col] = state
        return lcg_to_unit_float(state)

    @ti.func
    def index(self, row: ti.i32, col: ti.i32, count: ti.i32) -> ti.i32:
        """Draw a uniform integer in [0, count) from the stream at (row, col)."""
        value = ti.cast(self.uniform(row, col) * count, ti.i32)
        return ti.min(value, count - 1)


# =============================================================================
# Host-side Tables
# =============================================================================


def build_cosine_table(
    rng: np.random.Generator,
    rays_per_pixel: int,
    samples_per_stratum: int,
) -> npt.NDArray[np.float32]:
    """Build the stratified cosine-weighted hemisphere direction table.

    The unit square is split into rays_per_pixel x rays_per_pixel strata and
    one jittered sample is drawn per stratum, samples_per_stratum times over.
    Azimuth is uniform and elevation is acos(sqrt(xi)), so directions are
    distributed proportionally to cos(theta) about the local +Z axis.

    Entry ``block * n^2 + u_stratum * n + v_stratum`` holds the sample of
    stratum (u_stratum, v_stratum) in the given block, where n is
    rays_per_pixel.

    Args:
        rng: The render's random generator.
        rays_per_pixel: Strata per axis.
        samples_per_stratum: Number of independent blocks of samples.

    Returns:
        Array of shape (samples_per_stratum * n^2, 3) of unit vectors.
    """
    n = rays_per_pixel
    u_strata, v_strata = np.meshgrid(np.arange(n), np.arange(n), indexing="ij")
    u = (u_strata.ravel()[None, :] + rng.random((samples_per_stratum, n * n))) / n
    v = (v_strata.ravel()[None, :] + rng.random((samples_per_stratum, n * n))) / n

    azimuth = 2.0 * np.pi * u
    elevation = np.arccos(np.sqrt(v))
    table = np.stack(
        [
            np.cos(azimuth) * np.sin(elevation),
            np.sin(azimuth) * np.sin(elevation),
            np.cos(elevation),
        ],
        axis=-1,
    )
    return table.reshape(-1, 3).astype(np.float32)


def build_permutation_sequences(
    rng: np.random.Generator,
    num_sequences: int,
    rays_per_pixel: int,
) -> npt.NDArray[np.int32]:
    """Build shuffled orderings of the rays_per_pixel^2 strata.

    Returns:
        Array of shape (num_sequences, rays_per_pixel^2); each row is a
        permutation of range(rays_per_pixel^2).
    """
    count = rays_per_pixel * rays_per_pixel
    return np.stack([rng.permutation(count) for _ in range(num_sequences)]).astype(np.int32)


def sample_points_on_triangle(
    rng: np.random.Generator,
    v0: npt.NDArray[np.float64],
    v1: npt.NDArray[np.float64],
    v2: npt.NDArray[np.float64],
    count: int,
) -> npt.NDArray[np.float64]:
    """Draw points uniformly distributed over a triangle.

    Samples (u, v) in the unit square and folds the half with u + v > 1 back
    into the triangle.

    Returns:
        Array of shape (count, 3).
    """
    u = rng.random(count)
    v = rng.random(count)
    fold = u + v > 1.0
    u[fold], v[fold] = 1.0 - u[fold], 1.0 - v[fold]
    return v0 + u[:, None] * (v1 - v0) + v[:, None] * (v2 - v0)


# =============================================================================
# Direction Sampling (Taichi-side)
# =============================================================================


@ti.func
def rotate_to_frame(local_dir: vec3, axis: vec3) -> vec3:
    """Rotate a +Z-centred direction so that +Z maps onto axis.

    Applies a rotation about Y by the axis' elevation followed by a rotation
    about Z by its azimuth, both taken from the axis' own spherical angles.

    Args:
        local_dir: Direction expressed around the +Z axis.
        axis: Unit vector that +Z should be rotated onto.

    Returns:
        The rotated direction.
    """
    el = -ti.acos(tm.clamp(axis.z, -1.0, 1.0))
    az = -ti.atan2(axis.y, axis.x)

    # Y rotation
    x2 = ti.cos(el) * local_dir.x - ti.sin(el) * local_dir.z
    y2 = local_dir.y
    z2 = ti.sin(el) * local_dir.x + ti.cos(el) * local_dir.z

    # Z rotation
    return vec3(
        ti.cos(az) * x2 + ti.sin(az) * y2,
        -ti.sin(az) * x2 + ti.cos(az) * y2,
        z2,
    )


@ti.func
def lobe_direction(xi1: ti.f32, xi2: ti.f32, exponent: ti.f32) -> vec3:
    """Sample a Phong-like lobe about the local +Z axis.

    Larger exponents concentrate samples closer to +Z; an exponent of zero
    gives the cosine-weighted hemisphere.

    Args:
        xi1: Uniform random value for the azimuth.
        xi2: Uniform random value for the elevation.
        exponent: Lobe concentration (the material's specular index).

    Returns:
        A unit direction around +Z.
    """
    azimuth = 2.0 * tm.pi * xi1
    elevation = ti.acos(ti.sqrt(xi2 ** (1.0 / (exponent + 1.0))))
    return vec3(
        ti.cos(azimuth) * ti.sin(elevation),
        ti.sin(azimuth) * ti.sin(elevation),
        ti.cos(elevation),
    )
