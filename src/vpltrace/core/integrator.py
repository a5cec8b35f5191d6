"""Virtual-point-light path tracer.

The PathTracer owns everything a render needs besides the scene geometry:
the camera basis, the radiance buffer, the cosine-weighted diffuse table
with its shuffled stratum sequences, the virtual point light pool and one
random stream per pixel.

The image is traced two scanlines at a time. Each pixel averages
rays_per_pixel^2 jittered camera rays, one per sub-pixel stratum. Along
each path:

- A miss ends the path.
- Hitting a light source adds its emitted colour and ends the path.
- Any other hit adds the direct lighting estimate from the virtual point
  lights, weighted by the path's accumulated colour and importance.
- Unless the depth limit is reached, one uniform draw picks the next
  event from the hit material's diffuse, specular and transmission
  probabilities; the remaining probability is absorption.

Events other than perfect mirror reflection and perfect refraction halve
the importance factor. Every continuing event multiplies the path colour
by the hit object's colour.

After every scanline pair the radiance of all finished rows can be tone
mapped into display bytes (see tone_map_saturation).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.core.integrator import PathTracer
    >>> from vpltrace.scene.intersection import SceneModel
    >>> tracer = PathTracer(SceneModel(scene), seed=1)
    >>> while tracer.is_tracing():
    ...     tracer.trace_scanline_pair()
    >>> image = tracer.update_display()
"""

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from vpltrace.camera.pinhole import compute_camera_basis, get_ray
from vpltrace.core.lights import VirtualPointLight, generate_virtual_point_lights
from vpltrace.core.ray import reflect, refract
from vpltrace.core.sampler import (
    RandomStreams,
    build_cosine_table,
    build_permutation_sequences,
    lobe_direction,
    rotate_to_frame,
)
from vpltrace.preview.display import CHANNEL_ORDERS, tone_map_saturation
from vpltrace.scene.intersection import SceneModel

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Sampling Constants
# =============================================================================

# Independent blocks of cosine-table samples per stratum
SAMPLES_PER_STRATUM = 20

# Shuffled stratum orderings to choose from per path depth
NUM_SEQUENCES = 20

# Rows traced per call to trace_scanline_pair()
ROWS_PER_STEP = 2

# Outside medium for refraction
AIR_IOR = 1.0


@dataclass
class PathSample:
    """Result of tracing one camera ray with PathTracer.trace_ray().

    Attributes:
        radiance: Accumulated RGB radiance along the path.
        importance: Importance factor after the last bounce.
        hits: Number of surfaces the path hit.
    """

    radiance: tuple[float, float, float]
    importance: float
    hits: int


def _as_float3(values: npt.ArrayLike) -> list[float]:
    array = np.asarray(values, dtype=np.float64).reshape(3)
    return [float(c) for c in array]


@ti.data_oriented
class PathTracer:
    """Progressive scanline path tracer over a SceneModel.

    Args:
        model: The scene geometry and materials.
        seed: Seed for the render's random generator. None draws fresh
            entropy.
        channel_order: Byte order of the display buffer, "rgb" or "bgr".
        samples_per_stratum: Blocks in the cosine-weighted direction table.
        num_sequences: Number of shuffled stratum sequences.

    Raises:
        SceneValidationError: If the scene is not renderable.
        ValueError: If an option is out of range.
    """

    def __init__(
        self,
        model: SceneModel,
        seed: int | None = None,
        *,
        channel_order: str = "rgb",
        samples_per_stratum: int = SAMPLES_PER_STRATUM,
        num_sequences: int = NUM_SEQUENCES,
    ) -> None:
        model.scene.validate()
        if channel_order not in CHANNEL_ORDERS:
            raise ValueError(f"channel_order must be one of {CHANNEL_ORDERS}, got '{channel_order}'")
        if samples_per_stratum <= 0:
            raise ValueError("samples_per_stratum must be at least 1")
        if num_sequences <= 0:
            raise ValueError("num_sequences must be at least 1")

        scene = model.scene
        settings = scene.settings

        self.model = model
        self.seed = seed
        self.channel_order = channel_order
        self.width = settings.width
        self.height = settings.height
        self.rays_per_pixel = settings.rays_per_pixel
        self.path_depth = settings.path_depth
        self.saturation = settings.saturation
        self.samples_per_stratum = samples_per_stratum
        self.num_sequences = num_sequences

        self._rng = np.random.default_rng(seed)

        # Camera
        basis = compute_camera_basis(scene.camera, self.width, self.height)
        self._eye = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._corner = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._u_vec = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._v_vec = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._eye[None] = _as_float3(basis.eye)
        self._corner[None] = _as_float3(basis.corner)
        self._u_vec[None] = _as_float3(basis.u_vec)
        self._v_vec[None] = _as_float3(basis.v_vec)

        # Radiance buffer, row 0 at the top of the image
        self.radiance = ti.Vector.field(3, dtype=ti.f32, shape=(self.height, self.width))

        # Stratum sequences, one chosen per pixel and depth
        sequences = build_permutation_sequences(self._rng, num_sequences, self.rays_per_pixel)
        self.sequences = ti.field(dtype=ti.i32, shape=sequences.shape)
        self.sequences.from_numpy(sequences)
        self.strata = ti.field(dtype=ti.i32, shape=(self.height, self.width, self.path_depth))

        # Virtual point lights
        self._lights = generate_virtual_point_lights(scene, self._rng)
        self.num_vpls = len(self._lights)
        self.lights_to_test = int(self.num_vpls * settings.light_sample_ratio)
        n_l = max(self.num_vpls, 1)
        self.vpl_point = ti.Vector.field(3, dtype=ti.f32, shape=n_l)
        self.vpl_normal = ti.Vector.field(3, dtype=ti.f32, shape=n_l)
        self.vpl_plane_constant = ti.field(dtype=ti.f32, shape=n_l)
        self.vpl_object = ti.field(dtype=ti.i32, shape=n_l)
        if self._lights:
            self.vpl_point.from_numpy(np.array([l.point for l in self._lights], dtype=np.float32))
            self.vpl_normal.from_numpy(np.array([l.normal for l in self._lights], dtype=np.float32))
            self.vpl_plane_constant.from_numpy(
                np.array([l.plane_constant for l in self._lights], dtype=np.float32)
            )
            self.vpl_object.from_numpy(np.array([l.object_index for l in self._lights], dtype=np.int32))

        # Cosine-weighted diffuse directions
        table = build_cosine_table(self._rng, self.rays_per_pixel, samples_per_stratum)
        self.diffuse_table = ti.Vector.field(3, dtype=ti.f32, shape=table.shape[0])
        self.diffuse_table.from_numpy(table)

        # Per-pixel random streams
        self.streams = RandomStreams((self.height, self.width), self._rng)

        logger.info(
            "Prepared %dx%d render: %d rays per pixel, depth %d, %d lights (%d tested per point), "
            "%d diffuse table entries",
            self.width,
            self.height,
            self.rays_per_pixel**2,
            self.path_depth,
            self.num_vpls,
            self.lights_to_test,
            table.shape[0],
        )

        # Single-query probe buffers
        self._probe_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_object = ti.field(dtype=ti.i32, shape=())
        self._probe_radiance = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_importance = ti.field(dtype=ti.f32, shape=())
        self._probe_hits = ti.field(dtype=ti.i32, shape=())

        self._current_line = 0
        self._display = np.zeros((self.height, self.width, 3), dtype=np.uint8)

    # =========================================================================
    # Sampling
    # =========================================================================

    @ti.func
    def _diffuse_direction(self, row: ti.i32, col: ti.i32, sample: ti.i32, depth: ti.i32, normal: vec3) -> vec3:
        """Look up a cosine-weighted direction about normal.

        The pixel's stratum sequence for this depth maps the camera
        sub-sample index to a stratum; a random block of the table supplies
        the sample within that stratum.
        """
        n2 = self.rays_per_pixel * self.rays_per_pixel
        stratum = self.sequences[self.strata[row, col, depth], sample]
        block = self.streams.index(row, col, self.samples_per_stratum)
        return rotate_to_frame(self.diffuse_table[stratum + block * n2], normal)

    @ti.func
    def _glossy_direction(self, row: ti.i32, col: ti.i32, mirror: vec3, exponent: ti.f32) -> vec3:
        xi1 = self.streams.uniform(row, col)
        xi2 = self.streams.uniform(row, col)
        return tm.normalize(rotate_to_frame(lobe_direction(xi1, xi2, exponent), mirror))

    # =========================================================================
    # Direct Lighting
    # =========================================================================

    @ti.func
    def _direct_lighting(self, row: ti.i32, col: ti.i32, point: vec3, normal: vec3, obj: ti.i32) -> vec3:
        """Estimate direct illumination at a surface point.

        Every light is tested when lights_to_test equals the pool size,
        otherwise lights_to_test lights are drawn at random. The sum of
        unoccluded contributions is divided by the number tested.
        """
        direct = vec3(0.0, 0.0, 0.0)
        if ti.static(self.lights_to_test > 0):
            surface = self.model.diffuse[obj] * self.model.color[obj]
            for i in range(self.lights_to_test):
                light = i
                if ti.static(self.lights_to_test != self.num_vpls):
                    light = self.streams.index(row, col, self.num_vpls)

                to_light = self.vpl_point[light] - point
                plane_normal = self.vpl_normal[light]
                plane_distance = tm.dot(plane_normal, point) - self.vpl_plane_constant[light]
                if plane_distance > 0.0:
                    if self.model.intersect_shadow(point, to_light) == 0:
                        light_dir = tm.normalize(to_light)
                        receive = tm.dot(normal, light_dir)
                        emission = -tm.dot(plane_normal, light_dir)
                        if receive > 0.0 and emission > 0.0:
                            light_color = self.model.color[self.vpl_object[light]]
                            direct += emission * receive * surface * light_color
            direct /= self.lights_to_test
        return direct

    # =========================================================================
    # Path Tracing Core
    # =========================================================================

    @ti.func
    def _trace_path(self, row: ti.i32, col: ti.i32, sample: ti.i32, origin: vec3, direction: vec3):
        """Trace one path and accumulate its radiance.

        Args:
            row: Pixel row owning the random stream and stratum sequences.
            col: Pixel column.
            sample: Index of the camera sub-sample within the pixel.
            origin: Camera ray origin.
            direction: Unit camera ray direction.

        Returns:
            A tuple (radiance, importance, hits).
        """
        source = origin
        ray_dir = direction
        path_color = vec3(1.0, 1.0, 1.0)
        importance = 1.0
        radiance = vec3(0.0, 0.0, 0.0)
        hits = 0

        # Active flag for path continuation
        active = 1

        for depth in range(self.path_depth):
            if active == 1:
                rec = self.model.intersect_closest(source, ray_dir)
                if rec.hit == 0:
                    active = 0
                else:
                    hits += 1
                    obj = rec.object_index
                    if self.model.light_source[obj] == 1:
                        # Emitters do not reflect
                        radiance += importance * path_color * self.model.color[obj]
                        active = 0
                    else:
                        direct = self._direct_lighting(row, col, rec.point, rec.normal, obj)
                        radiance += importance * path_color * direct

                        if depth + 1 >= self.path_depth:
                            active = 0
                        else:
                            diffuse = self.model.diffuse[obj]
                            specular = self.model.specular[obj]
                            transmission = self.model.transmission[obj]
                            perfect = self.model.perfect_specular[obj]

                            e = self.streams.uniform(row, col)
                            next_dir = ray_dir
                            scattered = 0
                            halve = 1

                            if e < diffuse:
                                next_dir = self._diffuse_direction(row, col, sample, depth, rec.normal)
                                scattered = 1
                            elif e < diffuse + specular:
                                mirror = reflect(ray_dir, rec.normal)
                                next_dir = mirror
                                if perfect == 1:
                                    halve = 0
                                else:
                                    next_dir = self._glossy_direction(
                                        row, col, mirror, self.model.specular_index[obj]
                                    )
                                if tm.dot(next_dir, rec.normal) > 0.0:
                                    scattered = 1
                            elif e < diffuse + specular + transmission:
                                # Non-perfect transmission keeps the incoming direction
                                if perfect == 1:
                                    next_dir = refract(
                                        -ray_dir,
                                        rec.normal,
                                        AIR_IOR,
                                        self.model.index_of_refraction[obj],
                                    )
                                    halve = 0
                                if tm.dot(next_dir, rec.normal) < 0.0:
                                    scattered = 1

                            if scattered == 0:
                                # Absorbed, or bounced to the wrong side
                                active = 0
                            else:
                                if halve == 1:
                                    importance *= 0.5
                                path_color *= self.model.color[obj]
                                source = rec.point
                                ray_dir = next_dir

        return radiance, importance, hits

    @ti.func
    def _choose_strata(self, row: ti.i32, col: ti.i32):
        for depth in range(self.path_depth):
            self.strata[row, col, depth] = self.streams.index(row, col, self.num_sequences)

    @ti.func
    def _trace_pixel(self, row: ti.i32, col: ti.i32) -> vec3:
        """Average the stratified camera sub-samples of one pixel."""
        self._choose_strata(row, col)

        n = self.rays_per_pixel
        total = vec3(0.0, 0.0, 0.0)
        sample = 0
        for u_stratum in range(n):
            for v_stratum in range(n):
                s = (col + (u_stratum + self.streams.uniform(row, col)) / n) / self.width
                t = (row + (v_stratum + self.streams.uniform(row, col)) / n) / self.height
                ray = get_ray(self._eye[None], self._corner[None], self._u_vec[None], self._v_vec[None], s, t)
                radiance, _, _ = self._trace_path(row, col, sample, ray.origin, ray.direction)
                total += radiance
                sample += 1

        color = total / (n * n)

        # Replace NaN/Inf from degenerate geometry
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0
        return color

    # =========================================================================
    # Rendering Kernels
    # =========================================================================

    @ti.kernel
    def _trace_rows(self, first: ti.i32, last: ti.i32):
        for row, col in ti.ndrange((first, last), self.width):
            self.radiance[row, col] = self._trace_pixel(row, col)

    # Probe kernels run their body inside a single-iteration outer loop so
    # that the loops of the inlined functions stay serial.

    @ti.kernel
    def _trace_ray_kernel(self):
        for _ in range(1):
            self._choose_strata(0, 0)
            radiance, importance, hits = self._trace_path(
                0, 0, 0, self._probe_origin[None], tm.normalize(self._probe_direction[None])
            )
            self._probe_radiance[None] = radiance
            self._probe_importance[None] = importance
            self._probe_hits[None] = hits

    @ti.kernel
    def _direct_lighting_kernel(self):
        for _ in range(1):
            self._probe_radiance[None] = self._direct_lighting(
                0, 0, self._probe_origin[None], self._probe_direction[None], self._probe_object[None]
            )

    # =========================================================================
    # Frame Loop
    # =========================================================================

    def trace_scanline_pair(self) -> None:
        """Trace the next two rows of the image.

        Does nothing once every row has been traced. The last step of an
        image with an odd height traces a single row.
        """
        if self._current_line >= self.height:
            return

        first = self._current_line
        last = min(first + ROWS_PER_STEP, self.height)
        self._trace_rows(first, last)
        self._current_line = last

        if self._current_line >= self.height:
            logger.info("Frame complete (%dx%d)", self.width, self.height)

    def update_display(self) -> npt.NDArray[np.uint8]:
        """Tone map all finished rows into the display buffer.

        Rows not traced yet stay zero.

        Returns:
            The display buffer, shape (height, width, 3), in channel_order.
        """
        self._display = tone_map_saturation(
            self.radiance.to_numpy(),
            self._current_line,
            self.saturation,
            self.channel_order,
        )
        return self._display

    def display_buffer(self) -> npt.NDArray[np.uint8]:
        """The display buffer as of the last update_display() call."""
        return self._display

    def display_bytes(self) -> bytes:
        """The display buffer packed as 3 bytes per pixel, row-major."""
        return self._display.tobytes()

    @property
    def current_line(self) -> int:
        """Number of rows traced so far."""
        return self._current_line

    @property
    def progress(self) -> float:
        """Fraction of rows traced, in [0, 1]."""
        return self._current_line / self.height

    def is_tracing(self) -> bool:
        """True while rows remain to be traced."""
        return self._current_line < self.height

    def reset(self) -> None:
        """Clear the radiance and display buffers and restart at row 0.

        The random streams carry on from their current state, so the next
        frame is statistically independent of the previous one.
        """
        self.radiance.fill(0.0)
        self._display = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self._current_line = 0

    def radiance_numpy(self) -> npt.NDArray[np.float32]:
        """Raw accumulated radiance, shape (height, width, 3)."""
        return self.radiance.to_numpy()

    # =========================================================================
    # Probes
    # =========================================================================

    def trace_ray(self, origin: npt.ArrayLike, direction: npt.ArrayLike) -> PathSample:
        """Trace a single path from an arbitrary camera ray.

        The path draws from the random stream of pixel (0, 0).

        Args:
            origin: Ray origin (x, y, z).
            direction: Ray direction (x, y, z), normalized before tracing.

        Returns:
            The PathSample for the ray.
        """
        self._probe_origin[None] = _as_float3(origin)
        self._probe_direction[None] = _as_float3(direction)
        self._trace_ray_kernel()
        radiance = self._probe_radiance[None]
        return PathSample(
            radiance=(float(radiance[0]), float(radiance[1]), float(radiance[2])),
            importance=float(self._probe_importance[None]),
            hits=int(self._probe_hits[None]),
        )

    def direct_lighting(
        self, point: npt.ArrayLike, normal: npt.ArrayLike, object_index: int
    ) -> tuple[float, float, float]:
        """Estimate direct lighting at a point as seen by a given object.

        Args:
            point: Shaded point (x, y, z).
            normal: Unit surface normal at the point.
            object_index: Index of the object supplying the material.

        Returns:
            The RGB direct lighting estimate.

        Raises:
            ValueError: If object_index is out of range.
        """
        if not 0 <= object_index < self.model.num_objects:
            raise ValueError(
                f"object_index {object_index} out of range [0, {self.model.num_objects})"
            )
        self._probe_origin[None] = _as_float3(point)
        self._probe_direction[None] = _as_float3(normal)
        self._probe_object[None] = object_index
        self._direct_lighting_kernel()
        radiance = self._probe_radiance[None]
        return (float(radiance[0]), float(radiance[1]), float(radiance[2]))

    def virtual_point_lights(self) -> list[VirtualPointLight]:
        """The virtual point light pool of this render."""
        return list(self._lights)
