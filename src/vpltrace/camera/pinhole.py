"""Pinhole camera model for primary ray generation.

The camera is described by an eye point, a view direction and an up
vector. From these a basis is built on the host:

- u = direction x up, normalized, then scaled by the aspect ratio
- v = direction x u, normalized

The image plane sits one unit in front of the eye along the normalized
view direction. Its corner is ``eye + direction - u/2 - v/2``, so the
plane is centred on the view axis with horizontal extent equal to the
aspect ratio and vertical extent 1. A parametric image coordinate
(s, t) in [0, 1]^2 maps to ``corner + s * u + t * v``; with the usual up
vector, s runs left to right and t runs top to bottom.

Example:
    >>> from vpltrace.camera.pinhole import PinholeCamera, compute_camera_basis
    >>> camera = PinholeCamera(eye=(0, 0, 5), direction=(0, 0, -1), up=(0, 1, 0))
    >>> basis = compute_camera_basis(camera, 640, 480)
    >>> basis.corner.round(3).tolist()
    [-0.667, 0.5, 4.0]
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from vpltrace.core.ray import Ray, make_ray, vec3

# Vectors shorter than this are treated as degenerate
_DEGENERATE_LENGTH = 1e-12


# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        eye: Camera position in world space (x, y, z).
        direction: View direction (need not be unit length).
        up: Up direction used to orient the image plane.
    """

    eye: tuple[float, float, float] = (0.0, 0.0, 0.0)
    direction: tuple[float, float, float] = (1.0, 0.0, 0.0)
    up: tuple[float, float, float] = (0.0, 1.0, 0.0)

    def validate(self) -> None:
        """Check that the camera vectors define a usable basis.

        Raises:
            ValueError: If the direction or up vector is zero, or if they
                are parallel.
        """
        direction = np.asarray(self.direction, dtype=np.float64)
        up = np.asarray(self.up, dtype=np.float64)
        if np.linalg.norm(direction) <= _DEGENERATE_LENGTH:
            raise ValueError("Camera direction must be non-zero")
        if np.linalg.norm(up) <= _DEGENERATE_LENGTH:
            raise ValueError("Camera up vector must be non-zero")
        if np.linalg.norm(np.cross(direction, up)) <= _DEGENERATE_LENGTH:
            raise ValueError("Camera direction and up vector must not be parallel")

    def to_dict(self) -> dict[str, Any]:
        return {"eye": list(self.eye), "direction": list(self.direction), "up": list(self.up)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PinholeCamera":
        eye = data.get("eye", [0.0, 0.0, 0.0])
        direction = data.get("direction", [1.0, 0.0, 0.0])
        up = data.get("up", [0.0, 1.0, 0.0])
        return cls(
            eye=(eye[0], eye[1], eye[2]),
            direction=(direction[0], direction[1], direction[2]),
            up=(up[0], up[1], up[2]),
        )


@dataclass
class CameraBasis:
    """Image-plane geometry derived from a PinholeCamera.

    Attributes:
        eye: Camera position.
        corner: World position of image coordinate (0, 0).
        u_vec: Full horizontal extent of the image plane.
        v_vec: Full vertical extent of the image plane.
    """

    eye: npt.NDArray[np.float64]
    corner: npt.NDArray[np.float64]
    u_vec: npt.NDArray[np.float64]
    v_vec: npt.NDArray[np.float64]


# =============================================================================
# Camera Setup (Python-side, called once per render)
# =============================================================================


def compute_camera_basis(camera: PinholeCamera, width: int, height: int) -> CameraBasis:
    """Build the image-plane basis for a camera and image size.

    Args:
        camera: Camera configuration.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        The CameraBasis for ray generation.
    """
    aspect_ratio = width / height

    eye = np.array(camera.eye, dtype=np.float64)
    direction = np.array(camera.direction, dtype=np.float64)
    up = np.array(camera.up, dtype=np.float64)

    u_vec = np.cross(direction, up)
    v_vec = np.cross(direction, u_vec)
    u_vec = u_vec / np.linalg.norm(u_vec)
    v_vec = v_vec / np.linalg.norm(v_vec)
    u_vec = u_vec * aspect_ratio

    # Centre of the image plane, then back half of each extent
    corner = eye + direction / np.linalg.norm(direction) - 0.5 * u_vec - 0.5 * v_vec

    return CameraBasis(eye=eye, corner=corner, u_vec=u_vec, v_vec=v_vec)


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


@ti.func
def get_ray(eye: vec3, corner: vec3, u_vec: vec3, v_vec: vec3, s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through parametric image coordinates (s, t).

    Args:
        eye: Camera position.
        corner: Image-plane corner for (0, 0).
        u_vec: Horizontal image-plane extent.
        v_vec: Vertical image-plane extent.
        s: Horizontal coordinate in [0, 1].
        t: Vertical coordinate in [0, 1].

    Returns:
        A Ray from the eye with a unit direction toward the image point.
    """
    target = corner + s * u_vec + t * v_vec
    return make_ray(eye, tm.normalize(target - eye))
