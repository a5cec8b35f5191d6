"""Geometry module for intersection tests.

Components:
    aabb: Ray/axis-aligned bounding box slab test (trivial rejection)
    triangle: Front-face ray-triangle intersection

All intersection routines are Taichi functions (@ti.func).
"""

from .aabb import AABB_EPSILON, ray_aabb
from .triangle import T_EPSILON, TriangleHit, hit_triangle

__all__ = [
    "ray_aabb",
    "AABB_EPSILON",
    "hit_triangle",
    "TriangleHit",
    "T_EPSILON",
]
