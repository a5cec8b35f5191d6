"""Cornell box scene configuration.

This module provides a factory function to create the classic Cornell box
scene as triangle meshes:

- 5 walls forming an open box (left, right, back, floor, ceiling)
- Left wall: red diffuse
- Right wall: green diffuse
- Back, floor, ceiling: white diffuse
- A mirror block and a glass block standing on the floor
- An emissive area light just below the ceiling

The box spans 0 to box_size on every axis. The camera sits outside the
open front (z < 0) looking towards +Z, so +X is to the viewer's left.

Every face is wound so that its right-hand-rule normal points towards
where it should be visible from: walls face into the box, blocks face
outwards and the light faces down.

Example:
    >>> from vpltrace.scene.cornell_box import create_cornell_box_scene
    >>> scene = create_cornell_box_scene()
    >>> [obj.name for obj in scene.objects][:3]
    ['floor', 'ceiling', 'back_wall']
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from vpltrace.camera.pinhole import PinholeCamera
from vpltrace.scene.model import RenderSettings, Scene, SceneObject

# =============================================================================
# Cornell Box Parameters
# =============================================================================


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Scale applied to the light colour to give its
            emitted radiance.
        light_color: RGB color of the light (each component in [0, 1]).
        left_wall_color: RGB reflectance of the left wall (red).
        right_wall_color: RGB reflectance of the right wall (green).
        back_wall_color: RGB reflectance of the back wall, floor and ceiling.

    Example:
        >>> custom = CornellBoxParams(
        ...     light_color=(1.0, 0.9, 0.8),  # Warm light
        ...     left_wall_color=(0.2, 0.2, 0.8),  # Blue wall
        ... )
    """

    light_intensity: float = 1.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    back_wall_color: tuple[float, float, float] = (0.73, 0.73, 0.73)


# =============================================================================
# Cornell Box Constants
# =============================================================================

# Classic Cornell box dimensions (approximately 555x555x555 units)
BOX_SIZE = 555.0

# Classic light dimensions, centred on the ceiling
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

# Gap between the light and the ceiling
LIGHT_DROP = 1.0

MIRROR_COLOR = (0.95, 0.95, 0.95)
GLASS_COLOR = (0.9, 0.95, 0.95)
GLASS_IOR = 1.5

DEFAULT_SETTINGS = RenderSettings(
    width=256,
    height=256,
    rays_per_pixel=2,
    light_samples=4,
    light_sample_ratio=1.0,
    path_depth=3,
    saturation=1.0,
)


# =============================================================================
# Mesh Helpers
# =============================================================================


def quad_mesh(
    corner: npt.ArrayLike,
    edge_u: npt.ArrayLike,
    edge_v: npt.ArrayLike,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
    """Build a parallelogram from two triangles.

    The vertices are corner, corner+u, corner+u+v and corner+v; the faces
    face along edge_u x edge_v.

    Returns:
        A tuple (vertices, faces) of shapes (4, 3) and (2, 3).
    """
    corner = np.asarray(corner, dtype=np.float64)
    edge_u = np.asarray(edge_u, dtype=np.float64)
    edge_v = np.asarray(edge_v, dtype=np.float64)
    vertices = np.array([corner, corner + edge_u, corner + edge_u + edge_v, corner + edge_v])
    faces = np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int64)
    return vertices, faces


def box_mesh(
    box_min: npt.ArrayLike,
    box_max: npt.ArrayLike,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
    """Build an axis-aligned box with outward-facing faces.

    Each side has its own four vertices, so shading stays flat.

    Returns:
        A tuple (vertices, faces) of shapes (24, 3) and (12, 3).
    """
    x0, y0, z0 = np.asarray(box_min, dtype=np.float64)
    x1, y1, z1 = np.asarray(box_max, dtype=np.float64)
    dx, dy, dz = x1 - x0, y1 - y0, z1 - z0

    sides = [
        ((x0, y0, z0), (dx, 0, 0), (0, 0, dz)),  # bottom, -Y
        ((x0, y1, z0), (0, 0, dz), (dx, 0, 0)),  # top, +Y
        ((x0, y0, z0), (0, dy, 0), (dx, 0, 0)),  # front, -Z
        ((x0, y0, z1), (dx, 0, 0), (0, dy, 0)),  # back, +Z
        ((x0, y0, z0), (0, 0, dz), (0, dy, 0)),  # -X
        ((x1, y0, z0), (0, dy, 0), (0, 0, dz)),  # +X
    ]

    vertices = []
    faces = []
    for corner, edge_u, edge_v in sides:
        quad_vertices, quad_faces = quad_mesh(corner, edge_u, edge_v)
        faces.append(quad_faces + 4 * len(vertices))
        vertices.append(quad_vertices)
    return np.concatenate(vertices), np.concatenate(faces)


def _wall(name: str, corner, edge_u, edge_v, color) -> SceneObject:
    vertices, faces = quad_mesh(corner, edge_u, edge_v)
    return SceneObject(name=name, vertices=vertices, faces=faces, color=tuple(color))


# =============================================================================
# Cornell Box Factory
# =============================================================================


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
    settings: RenderSettings | None = None,
) -> Scene:
    """Create a Cornell box scene with standard configuration.

    Args:
        box_size: The size of the box in each dimension.
        params: Light and wall colours. Defaults to CornellBoxParams().
        settings: Image and sampling settings. Defaults to a 256x256 image
            with 2x2 rays per pixel and path depth 3.

    Returns:
        A validated Scene. Object order: floor, ceiling, back wall, left
        wall, right wall, light, mirror block, glass block.
    """
    if params is None:
        params = CornellBoxParams()
    if settings is None:
        settings = RenderSettings(**vars(DEFAULT_SETTINGS))

    size = box_size
    white = params.back_wall_color

    objects = [
        _wall("floor", (0, 0, 0), (0, 0, size), (size, 0, 0), white),
        _wall("ceiling", (0, size, 0), (size, 0, 0), (0, 0, size), white),
        _wall("back_wall", (0, 0, size), (0, size, 0), (size, 0, 0), white),
        _wall("left_wall", (size, 0, 0), (0, 0, size), (0, size, 0), params.left_wall_color),
        _wall("right_wall", (0, 0, 0), (0, size, 0), (0, 0, size), params.right_wall_color),
    ]

    # =========================================================================
    # Area Light (faces down)
    # =========================================================================

    scale = size / BOX_SIZE
    light_width = LIGHT_WIDTH * scale
    light_depth = LIGHT_DEPTH * scale
    light_vertices, light_faces = quad_mesh(
        ((size - light_width) / 2.0, size - LIGHT_DROP * scale, (size - light_depth) / 2.0),
        (light_width, 0, 0),
        (0, 0, light_depth),
    )
    emission = tuple(c * params.light_intensity for c in params.light_color)
    objects.append(
        SceneObject(
            name="light",
            vertices=light_vertices,
            faces=light_faces,
            color=emission,
            light_source=True,
        )
    )

    # =========================================================================
    # Blocks
    # =========================================================================

    # Tall mirror block towards the back, on the viewer's left
    mirror_vertices, mirror_faces = box_mesh(
        (0.55 * size, 0.0, 0.5 * size), (0.8 * size, 0.6 * size, 0.75 * size)
    )
    objects.append(
        SceneObject(
            name="mirror_block",
            vertices=mirror_vertices,
            faces=mirror_faces,
            diffuse=0.0,
            specular=1.0,
            color=MIRROR_COLOR,
            perfect_specular=True,
        )
    )

    # Short glass block towards the front, on the viewer's right
    glass_vertices, glass_faces = box_mesh(
        (0.2 * size, 0.0, 0.2 * size), (0.45 * size, 0.3 * size, 0.45 * size)
    )
    objects.append(
        SceneObject(
            name="glass_block",
            vertices=glass_vertices,
            faces=glass_faces,
            diffuse=0.0,
            specular=0.1,
            transmission=0.9,
            index_of_refraction=GLASS_IOR,
            color=GLASS_COLOR,
            perfect_specular=True,
        )
    )

    # =========================================================================
    # Camera Setup
    # =========================================================================

    # The image plane is one unit from the eye with unit height, so at a
    # distance of box_size the front opening fills the frame
    camera = PinholeCamera(
        eye=(size / 2.0, size / 2.0, -size),
        direction=(0.0, 0.0, 1.0),
        up=(0.0, 1.0, 0.0),
    )

    scene = Scene(objects=objects, camera=camera, settings=settings, version=1)
    scene.validate()
    return scene
