"""Scene-level ray queries against triangle-mesh objects.

SceneModel derives normals and bounds for a validated Scene and uploads the
geometry and materials into Taichi fields, laid out as structure-of-arrays:
all vertices and faces of all objects live in flat fields, and each object
records the range of faces it owns. Face vertex indices are rebased onto
the flat vertex field.

Two queries are provided, both iterating all objects, rejecting objects
whose bounding box the ray cannot reach, and testing every face of the
remaining ones:

- intersect_closest: the nearest front-facing hit, with a flat or (for
  smooth objects) barycentrically interpolated normal.
- intersect_shadow: whether anything lies on the segment origin ->
  origin + segment, excluding the segment's end point.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.scene.intersection import SceneModel
    >>> model = SceneModel(scene)
    >>> hit = model.closest_hit((0.5, 2.0, 0.5), (0.0, -1.0, 0.0))
    >>> hit.object_index if hit else None
    0
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from vpltrace.geometry.aabb import ray_aabb
from vpltrace.geometry.triangle import T_EPSILON, hit_triangle
from vpltrace.scene.model import Scene, SceneObject

vec3 = tm.vec3

# Initial closest-hit distance
T_MAX = 1e30


@ti.dataclass
class SceneHit:
    """Record of a ray-scene intersection.

    Attributes:
        hit: 1 if the ray hit any front-facing triangle, 0 on a miss.
        object_index: Index of the hit object in the scene (-1 on a miss).
        face_index: Index of the hit face in the flat face field.
        t: Ray parameter of the hit point.
        point: World-space hit point.
        normal: Unit shading normal at the hit point.
    """

    hit: ti.i32
    object_index: ti.i32
    face_index: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3


@dataclass
class HitResult:
    """Python-side copy of a SceneHit, returned by SceneModel.closest_hit()."""

    object_index: int
    face_index: int
    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]


def _as_float3(values: npt.ArrayLike) -> list[float]:
    array = np.asarray(values, dtype=np.float64).reshape(3)
    return [float(c) for c in array]


def _padded(array: npt.NDArray, rows: int) -> npt.NDArray:
    """Zero-pad the leading axis of array up to rows."""
    if array.shape[0] >= rows:
        return array
    pad = np.zeros((rows - array.shape[0],) + array.shape[1:], dtype=array.dtype)
    return np.concatenate([array, pad])


@ti.data_oriented
class SceneModel:
    """GPU-resident, read-only scene geometry with intersection queries.

    Construction validates the scene and derives per-face normals, plane
    constants, per-vertex normals of smooth objects and bounding boxes.
    Object indices match the order of ``scene.objects``.

    Attributes:
        scene: The host-side scene this model was built from.
        num_objects: Number of objects.
        num_faces: Total number of faces over all objects.
        num_vertices: Total number of vertices over all objects.

    Raises:
        SceneValidationError: If the scene fails validation.
    """

    def __init__(self, scene: Scene) -> None:
        scene.validate()
        scene.prepare()
        self.scene = scene

        objects = scene.objects
        self.num_objects = len(objects)
        self.num_vertices = sum(obj.num_vertices for obj in objects)
        self.num_faces = sum(obj.num_faces for obj in objects)

        # Taichi fields need at least one element
        n_o = max(self.num_objects, 1)
        n_v = max(self.num_vertices, 1)
        n_f = max(self.num_faces, 1)

        # Geometry
        self.vertices = ti.Vector.field(3, dtype=ti.f32, shape=n_v)
        self.vertex_normals = ti.Vector.field(3, dtype=ti.f32, shape=n_v)
        self.faces = ti.Vector.field(3, dtype=ti.i32, shape=n_f)
        self.face_normals = ti.Vector.field(3, dtype=ti.f32, shape=n_f)
        self.plane_constants = ti.field(dtype=ti.f32, shape=n_f)

        # Per-object ranges and bounds
        self.face_offset = ti.field(dtype=ti.i32, shape=n_o)
        self.face_count = ti.field(dtype=ti.i32, shape=n_o)
        self.bounds_min = ti.Vector.field(3, dtype=ti.f32, shape=n_o)
        self.bounds_max = ti.Vector.field(3, dtype=ti.f32, shape=n_o)

        # Per-object materials
        self.diffuse = ti.field(dtype=ti.f32, shape=n_o)
        self.specular = ti.field(dtype=ti.f32, shape=n_o)
        self.transmission = ti.field(dtype=ti.f32, shape=n_o)
        self.specular_index = ti.field(dtype=ti.f32, shape=n_o)
        self.index_of_refraction = ti.field(dtype=ti.f32, shape=n_o)
        self.color = ti.Vector.field(3, dtype=ti.f32, shape=n_o)
        self.smooth = ti.field(dtype=ti.i32, shape=n_o)
        self.light_source = ti.field(dtype=ti.i32, shape=n_o)
        self.perfect_specular = ti.field(dtype=ti.i32, shape=n_o)

        # Single-ray probe buffers (Python-callable queries)
        self._probe_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_flag = ti.field(dtype=ti.i32, shape=())
        self._probe_object = ti.field(dtype=ti.i32, shape=())
        self._probe_face = ti.field(dtype=ti.i32, shape=())
        self._probe_t = ti.field(dtype=ti.f32, shape=())
        self._probe_point = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._probe_normal = ti.Vector.field(3, dtype=ti.f32, shape=())

        self._upload(objects, n_o, n_v, n_f)

    def _upload(self, objects: list[SceneObject], n_o: int, n_v: int, n_f: int) -> None:
        """Copy derived geometry and materials into the Taichi fields."""
        if self.num_objects == 0:
            return

        vertex_offsets = np.cumsum([0] + [obj.num_vertices for obj in objects[:-1]])
        face_offsets = np.cumsum([0] + [obj.num_faces for obj in objects[:-1]])

        vertices = np.concatenate([obj.vertices for obj in objects])
        faces = np.concatenate(
            [obj.faces + offset for obj, offset in zip(objects, vertex_offsets)]
        )
        face_normals = np.concatenate([obj.face_normals for obj in objects])
        plane_constants = np.concatenate([obj.plane_constants for obj in objects])
        vertex_normals = np.concatenate(
            [
                obj.vertex_normals if obj.vertex_normals is not None else np.zeros_like(obj.vertices)
                for obj in objects
            ]
        )

        self.vertices.from_numpy(_padded(vertices, n_v).astype(np.float32))
        self.vertex_normals.from_numpy(_padded(vertex_normals, n_v).astype(np.float32))
        self.faces.from_numpy(_padded(faces, n_f).astype(np.int32))
        self.face_normals.from_numpy(_padded(face_normals, n_f).astype(np.float32))
        self.plane_constants.from_numpy(_padded(plane_constants, n_f).astype(np.float32))

        def upload(target: ti.Field, values: list, dtype: type) -> None:
            target.from_numpy(_padded(np.array(values, dtype=dtype), n_o))

        upload(self.face_offset, list(face_offsets), np.int32)
        upload(self.face_count, [obj.num_faces for obj in objects], np.int32)
        upload(self.bounds_min, [obj.bounds_min for obj in objects], np.float32)
        upload(self.bounds_max, [obj.bounds_max for obj in objects], np.float32)
        upload(self.diffuse, [obj.diffuse for obj in objects], np.float32)
        upload(self.specular, [obj.specular for obj in objects], np.float32)
        upload(self.transmission, [obj.transmission for obj in objects], np.float32)
        upload(self.specular_index, [obj.specular_index for obj in objects], np.float32)
        upload(self.index_of_refraction, [obj.index_of_refraction for obj in objects], np.float32)
        upload(self.color, [obj.color for obj in objects], np.float32)
        upload(self.smooth, [int(obj.smooth) for obj in objects], np.int32)
        upload(self.light_source, [int(obj.light_source) for obj in objects], np.int32)
        upload(self.perfect_specular, [int(obj.perfect_specular) for obj in objects], np.int32)

    # =========================================================================
    # Taichi-side Queries
    # =========================================================================

    @ti.func
    def intersect_closest(self, origin: vec3, direction: vec3) -> SceneHit:
        """Find the nearest front-facing triangle hit along a ray.

        Ties in t keep the first face encountered in object/face order.

        Args:
            origin: Ray origin.
            direction: Ray direction.

        Returns:
            A SceneHit; check the hit field before using the rest.
        """
        closest_t = T_MAX
        nearest_object = -1
        nearest_face = -1
        bar_u = 0.0
        bar_v = 0.0

        for obj in range(self.num_objects):
            box_hit, _ = ray_aabb(self.bounds_min[obj], self.bounds_max[obj], origin, direction)
            if box_hit == 1:
                start = self.face_offset[obj]
                for f in range(start, start + self.face_count[obj]):
                    idx = self.faces[f]
                    rec = hit_triangle(
                        self.vertices[idx[0]],
                        self.vertices[idx[1]],
                        self.vertices[idx[2]],
                        origin,
                        direction,
                    )
                    if rec.hit == 1 and rec.t < closest_t:
                        closest_t = rec.t
                        nearest_object = obj
                        nearest_face = f
                        bar_u = rec.u
                        bar_v = rec.v

        result = SceneHit(
            hit=0,
            object_index=-1,
            face_index=-1,
            t=0.0,
            point=vec3(0.0, 0.0, 0.0),
            normal=vec3(0.0, 0.0, 0.0),
        )
        if nearest_object >= 0:
            normal = self.face_normals[nearest_face]
            if self.smooth[nearest_object] == 1:
                idx = self.faces[nearest_face]
                normal = tm.normalize(
                    (1.0 - bar_u - bar_v) * self.vertex_normals[idx[0]]
                    + bar_u * self.vertex_normals[idx[1]]
                    + bar_v * self.vertex_normals[idx[2]]
                )
            result = SceneHit(
                hit=1,
                object_index=nearest_object,
                face_index=nearest_face,
                t=closest_t,
                point=origin + closest_t * direction,
                normal=normal,
            )
        return result

    @ti.func
    def intersect_shadow(self, origin: vec3, segment: vec3) -> ti.i32:
        """Test whether anything blocks the segment origin -> origin + segment.

        A face occludes when it is hit with t < 1 - T_EPSILON, so the
        surface at the segment's end point never shadows itself.

        Args:
            origin: Segment start (the shaded point).
            segment: Vector from the start to the target point.

        Returns:
            1 if the segment is occluded, 0 if the target is visible.
        """
        occluded = 0
        for obj in range(self.num_objects):
            if occluded == 0:
                box_hit, _ = ray_aabb(self.bounds_min[obj], self.bounds_max[obj], origin, segment)
                if box_hit == 1:
                    start = self.face_offset[obj]
                    for f in range(start, start + self.face_count[obj]):
                        if occluded == 0:
                            idx = self.faces[f]
                            rec = hit_triangle(
                                self.vertices[idx[0]],
                                self.vertices[idx[1]],
                                self.vertices[idx[2]],
                                origin,
                                segment,
                            )
                            if rec.hit == 1 and rec.t < 1.0 - T_EPSILON:
                                occluded = 1
        return occluded

    # =========================================================================
    # Python-callable Probes
    # =========================================================================

    # The single-iteration outer loop keeps the query loops serial

    @ti.kernel
    def _closest_hit_kernel(self):
        for _ in range(1):
            rec = self.intersect_closest(self._probe_origin[None], self._probe_direction[None])
            self._probe_flag[None] = rec.hit
            self._probe_object[None] = rec.object_index
            self._probe_face[None] = rec.face_index
            self._probe_t[None] = rec.t
            self._probe_point[None] = rec.point
            self._probe_normal[None] = rec.normal

    @ti.kernel
    def _shadow_kernel(self):
        for _ in range(1):
            self._probe_flag[None] = self.intersect_shadow(
                self._probe_origin[None], self._probe_direction[None]
            )

    def closest_hit(self, origin: npt.ArrayLike, direction: npt.ArrayLike) -> HitResult | None:
        """Run the closest-hit query for a single ray.

        Args:
            origin: Ray origin (x, y, z).
            direction: Ray direction (x, y, z).

        Returns:
            A HitResult, or None if the ray misses every object.
        """
        self._probe_origin[None] = _as_float3(origin)
        self._probe_direction[None] = _as_float3(direction)
        self._closest_hit_kernel()
        if self._probe_flag[None] == 0:
            return None

        point = self._probe_point[None]
        normal = self._probe_normal[None]
        return HitResult(
            object_index=int(self._probe_object[None]),
            face_index=int(self._probe_face[None]),
            t=float(self._probe_t[None]),
            point=(float(point[0]), float(point[1]), float(point[2])),
            normal=(float(normal[0]), float(normal[1]), float(normal[2])),
        )

    def shadow_test(self, origin: npt.ArrayLike, segment: npt.ArrayLike) -> bool:
        """Run the shadow query for a single segment.

        Args:
            origin: Segment start (x, y, z).
            segment: Vector from the start to the target point.

        Returns:
            True if the segment is occluded.
        """
        self._probe_origin[None] = _as_float3(origin)
        self._probe_direction[None] = _as_float3(segment)
        self._shadow_kernel()
        return bool(self._probe_flag[None])
