"""Host-side scene description: triangle-mesh objects, camera and settings.

A Scene is produced once (by the loader or a scene factory), validated,
and then treated as read-only for the whole render. Per-face normals,
plane constants, optional per-vertex normals and bounding boxes are derived
on the host with NumPy before the geometry is uploaded to Taichi fields by
SceneModel.

Example:
    >>> import numpy as np
    >>> from vpltrace.scene.model import RenderSettings, Scene, SceneObject
    >>> floor = SceneObject(
    ...     name="floor",
    ...     vertices=np.array([[0, 0, 0], [0, 0, 1], [1, 0, 1], [1, 0, 0]], float),
    ...     faces=np.array([[0, 1, 2], [0, 2, 3]]),
    ... )
    >>> scene = Scene(objects=[floor], settings=RenderSettings(width=64, height=64))
    >>> scene.validate()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt

from vpltrace.camera.pinhole import PinholeCamera

# Tolerance for material probabilities summing to more than one
PROBABILITY_TOLERANCE = 1e-6

# Faces with a smaller cross-product length are considered degenerate
DEGENERATE_FACE_EPSILON = 1e-12


class SceneValidationError(ValueError):
    """Raised when a scene violates a precondition of the renderer."""


@dataclass
class RenderSettings:
    """Image and sampling controls for a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        rays_per_pixel: Strata per image axis; each pixel averages
            rays_per_pixel^2 camera sub-samples.
        light_samples: Virtual point lights placed on the smallest emissive
            triangle; larger triangles get proportionally more.
        light_sample_ratio: Fraction of the virtual point lights tested per
            shading point. 1.0 tests every light.
        path_depth: Maximum number of surface interactions per path.
        saturation: Scales the brightest channel to give the display
            ceiling during tone mapping.
    """

    width: int = 0
    height: int = 0
    rays_per_pixel: int = 1
    light_samples: int = 5
    light_sample_ratio: float = 1.0
    path_depth: int = 1
    saturation: float = 1.0


@dataclass
class SceneObject:
    """A triangle mesh with its material.

    The three event probabilities partition [0, 1): a path hitting the
    object continues diffusely with probability ``diffuse``, specularly
    with ``specular``, by transmission with ``transmission`` and is
    absorbed otherwise.

    Attributes:
        name: Object name (unique within a scene file).
        vertices: World-space vertex positions, shape (n, 3).
        faces: Vertex index triples, shape (m, 3).
        diffuse: Probability of a diffuse bounce.
        specular: Probability of a specular bounce.
        transmission: Probability of a transmitted bounce.
        specular_index: Lobe exponent for glossy (non-perfect) bounces.
        index_of_refraction: Index of refraction of the object's interior.
        color: RGB reflectance, or emitted radiance for light sources.
        smooth: Interpolate vertex normals across faces.
        light_source: The object emits ``color`` and does not reflect.
        perfect_specular: Specular and transmitted bounces are exact mirror
            and Snell directions rather than sampled lobes.
        face_normals: Derived unit normal per face, shape (m, 3).
        plane_constants: Derived plane constant per face (normal . v0).
        vertex_normals: Derived unit normal per vertex (smooth objects only).
        bounds_min: Derived minimum corner of the bounding box.
        bounds_max: Derived maximum corner of the bounding box.
    """

    name: str
    vertices: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 3)))
    faces: npt.NDArray[np.int64] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.int64)
    )
    diffuse: float = 1.0
    specular: float = 0.0
    transmission: float = 0.0
    specular_index: float = 3.0
    index_of_refraction: float = 1.1
    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    smooth: bool = False
    light_source: bool = False
    perfect_specular: bool = True

    face_normals: npt.NDArray[np.float64] | None = None
    plane_constants: npt.NDArray[np.float64] | None = None
    vertex_normals: npt.NDArray[np.float64] | None = None
    bounds_min: npt.NDArray[np.float64] | None = None
    bounds_max: npt.NDArray[np.float64] | None = None

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)

    @property
    def num_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def num_faces(self) -> int:
        return int(self.faces.shape[0])

    @property
    def absorption(self) -> float:
        """Probability mass left over after the three events."""
        return 1.0 - self.diffuse - self.specular - self.transmission

    def triangle(self, face_index: int) -> npt.NDArray[np.float64]:
        """Return the three vertex positions of a face, shape (3, 3)."""
        return self.vertices[self.faces[face_index]]

    def _raw_face_normals(self) -> npt.NDArray[np.float64]:
        tris = self.vertices[self.faces]
        return np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])

    def face_areas(self) -> npt.NDArray[np.float64]:
        """Area of every face (half the edge cross product length)."""
        return np.linalg.norm(self._raw_face_normals(), axis=1) / 2.0

    def generate_normals(self) -> None:
        """Derive face normals, plane constants and, if smooth, vertex normals.

        Vertex normals are the equal-weight sum of the unit normals of the
        incident faces, normalized. Vertices referenced by no face keep a
        zero normal.
        """
        raw = self._raw_face_normals()
        self.face_normals = raw / np.linalg.norm(raw, axis=1, keepdims=True)
        first_vertices = self.vertices[self.faces[:, 0]]
        self.plane_constants = np.einsum("ij,ij->i", self.face_normals, first_vertices)

        if self.smooth:
            accumulated = np.zeros_like(self.vertices)
            for corner in range(3):
                np.add.at(accumulated, self.faces[:, corner], self.face_normals)
            lengths = np.linalg.norm(accumulated, axis=1, keepdims=True)
            self.vertex_normals = np.divide(
                accumulated,
                lengths,
                out=np.zeros_like(accumulated),
                where=lengths > 0.0,
            )
        else:
            self.vertex_normals = None

    def generate_bounds(self) -> None:
        """Derive the tight axis-aligned bounding box of the vertices."""
        self.bounds_min = self.vertices.min(axis=0)
        self.bounds_max = self.vertices.max(axis=0)

    def validate(self) -> None:
        """Check material ranges and mesh integrity.

        Raises:
            SceneValidationError: If the object cannot be rendered.
        """
        for label, value in (
            ("diffuse", self.diffuse),
            ("specular", self.specular),
            ("transmission", self.transmission),
        ):
            if not 0.0 <= value <= 1.0:
                raise SceneValidationError(
                    f"Object '{self.name}': {label} probability {value} is outside [0, 1]"
                )
        if self.absorption < -PROBABILITY_TOLERANCE:
            raise SceneValidationError(
                f"Object '{self.name}': diffuse + specular + transmission exceeds 1"
            )
        if self.index_of_refraction <= 0.0:
            raise SceneValidationError(
                f"Object '{self.name}': index of refraction must be positive"
            )
        if self.specular_index < 0.0:
            raise SceneValidationError(
                f"Object '{self.name}': specular index must be non-negative"
            )
        if self.num_vertices == 0:
            raise SceneValidationError(f"Object '{self.name}' has no vertices")
        if self.num_faces == 0:
            raise SceneValidationError(f"Object '{self.name}' has no faces")
        if self.faces.min() < 0 or self.faces.max() >= self.num_vertices:
            raise SceneValidationError(
                f"Object '{self.name}': face index out of range [0, {self.num_vertices})"
            )
        degenerate = np.flatnonzero(
            np.linalg.norm(self._raw_face_normals(), axis=1) <= DEGENERATE_FACE_EPSILON
        )
        if degenerate.size > 0:
            raise SceneValidationError(
                f"Object '{self.name}': face {int(degenerate[0])} is degenerate"
            )

    def to_dict(self) -> dict[str, Any]:
        """Export the object (without derived data) to a plain dictionary."""
        return {
            "name": self.name,
            "diffuse": self.diffuse,
            "specular": self.specular,
            "transmission": self.transmission,
            "specular_index": self.specular_index,
            "index_of_refraction": self.index_of_refraction,
            "color": list(self.color),
            "smooth": self.smooth,
            "light_source": self.light_source,
            "perfect_specular": self.perfect_specular,
            "vertices": self.vertices.tolist(),
            "faces": self.faces.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SceneObject:
        """Create an object from a dictionary produced by to_dict()."""
        color_list = data.get("color", [1.0, 1.0, 1.0])
        return cls(
            name=data["name"],
            vertices=np.array(data.get("vertices", []), dtype=np.float64),
            faces=np.array(data.get("faces", []), dtype=np.int64),
            diffuse=data.get("diffuse", 1.0),
            specular=data.get("specular", 0.0),
            transmission=data.get("transmission", 0.0),
            specular_index=data.get("specular_index", 3.0),
            index_of_refraction=data.get("index_of_refraction", 1.1),
            color=(color_list[0], color_list[1], color_list[2]),
            smooth=data.get("smooth", False),
            light_source=data.get("light_source", False),
            perfect_specular=data.get("perfect_specular", True),
        )


@dataclass
class Scene:
    """A complete renderable scene.

    Object order is significant: an object's index in ``objects`` is the
    stable handle reported by hit queries and stored by virtual point
    lights.

    Attributes:
        objects: The scene's meshes.
        camera: The pinhole camera.
        settings: Image and sampling controls.
        version: Scene file format version (informational).
    """

    objects: list[SceneObject] = field(default_factory=list)
    camera: PinholeCamera = field(default_factory=PinholeCamera)
    settings: RenderSettings = field(default_factory=RenderSettings)
    version: int = 0

    @property
    def num_objects(self) -> int:
        return len(self.objects)

    def find_object(self, name: str) -> SceneObject | None:
        """Return the first object with the given name, ignoring case."""
        wanted = name.lower()
        for obj in self.objects:
            if obj.name.lower() == wanted:
                return obj
        return None

    def prepare(self) -> None:
        """Derive normals and bounds for every object."""
        for obj in self.objects:
            obj.generate_normals()
            obj.generate_bounds()

    def validate(self) -> None:
        """Check the scene against the renderer's preconditions.

        Raises:
            SceneValidationError: On the first violation found.
        """
        s = self.settings
        if s.width <= 0 or s.height <= 0:
            raise SceneValidationError(
                f"Image dimensions must be positive, got {s.width}x{s.height}"
            )
        if s.rays_per_pixel <= 0:
            raise SceneValidationError("rays_per_pixel must be at least 1")
        if s.path_depth <= 0:
            raise SceneValidationError("path_depth must be at least 1")
        if s.light_samples < 0:
            raise SceneValidationError("light_samples must be non-negative")
        if not 0.0 < s.light_sample_ratio <= 1.0:
            raise SceneValidationError(
                f"light_sample_ratio {s.light_sample_ratio} is outside (0, 1]"
            )
        if s.saturation <= 0.0:
            raise SceneValidationError("saturation must be positive")

        try:
            self.camera.validate()
        except ValueError as e:
            raise SceneValidationError(str(e)) from e

        for obj in self.objects:
            obj.validate()

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        s = self.settings
        return {
            "version": self.version,
            "camera": self.camera.to_dict(),
            "settings": {
                "width": s.width,
                "height": s.height,
                "rays_per_pixel": s.rays_per_pixel,
                "light_samples": s.light_samples,
                "light_sample_ratio": s.light_sample_ratio,
                "path_depth": s.path_depth,
                "saturation": s.saturation,
            },
            "objects": [obj.to_dict() for obj in self.objects],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scene:
        """Create a scene from a dictionary produced by to_dict()."""
        return cls(
            objects=[SceneObject.from_dict(obj) for obj in data.get("objects", [])],
            camera=PinholeCamera.from_dict(data.get("camera", {})),
            settings=RenderSettings(**data.get("settings", {})),
            version=data.get("version", 0),
        )
