"""Virtual point lights sampled from emissive geometry.

Every face of every light-source object receives a number of point
samples proportional to its area, relative to the smallest emissive
face: the smallest face gets ``light_samples`` points, a face n times
larger about n times as many. Each light remembers the plane it was
sampled from, which orients its emission, and the object and face it
came from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from vpltrace.core.sampler import sample_points_on_triangle
from vpltrace.scene.model import Scene

logger = logging.getLogger(__name__)

# Added before truncating the per-face sample count
SAMPLE_COUNT_EPSILON = 0.01


@dataclass
class VirtualPointLight:
    """A point sample on an emissive face.

    Attributes:
        point: World-space position of the sample.
        normal: Unit normal of the emitting face.
        plane_constant: Plane constant of the emitting face (normal . v0).
        object_index: Index of the emissive object in the scene.
        triangle_index: Index of the face within that object.
    """

    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    plane_constant: float
    object_index: int
    triangle_index: int


def light_sample_counts(areas: npt.NDArray[np.float64], min_area: float, light_samples: int) -> npt.NDArray[np.int64]:
    """Number of lights to place on faces of the given areas."""
    return (areas / min_area * light_samples + SAMPLE_COUNT_EPSILON).astype(np.int64)


def generate_virtual_point_lights(scene: Scene, rng: np.random.Generator) -> list[VirtualPointLight]:
    """Sample the virtual point light pool of a prepared scene.

    Args:
        scene: A scene whose normals have been derived (Scene.prepare()).
        rng: The render's random generator.

    Returns:
        The lights, grouped by object and face in scene order.
    """
    emitters = [(i, obj) for i, obj in enumerate(scene.objects) if obj.light_source]
    if not emitters:
        logger.info("Scene has no light sources; direct lighting is zero")
        return []

    min_area = min(float(obj.face_areas().min()) for _, obj in emitters)
    light_samples = scene.settings.light_samples

    lights: list[VirtualPointLight] = []
    for object_index, obj in emitters:
        counts = light_sample_counts(obj.face_areas(), min_area, light_samples)
        for face_index, count in enumerate(counts):
            if count == 0:
                continue
            v0, v1, v2 = obj.triangle(face_index)
            normal = tuple(float(c) for c in obj.face_normals[face_index])
            plane_constant = float(obj.plane_constants[face_index])
            for point in sample_points_on_triangle(rng, v0, v1, v2, int(count)):
                lights.append(
                    VirtualPointLight(
                        point=(float(point[0]), float(point[1]), float(point[2])),
                        normal=normal,
                        plane_constant=plane_constant,
                        object_index=object_index,
                        triangle_index=face_index,
                    )
                )

    logger.info(
        "Generated %d virtual point lights from %d emissive objects",
        len(lights),
        len(emitters),
    )
    return lights
