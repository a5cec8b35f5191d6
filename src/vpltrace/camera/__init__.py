"""Camera module for primary ray generation.

Components:
    pinhole: Pinhole (perspective) camera with a unit-distance image plane

Ray generation uses parametric image coordinates:
    s in [0, 1]: left to right across the image
    t in [0, 1]: top to bottom across the image
"""

from .pinhole import CameraBasis, PinholeCamera, compute_camera_basis, get_ray

__all__ = [
    "PinholeCamera",
    "CameraBasis",
    "compute_camera_basis",
    "get_ray",
]
