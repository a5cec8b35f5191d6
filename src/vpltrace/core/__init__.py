"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    sampler: Per-pixel random streams and precomputed sampling tables
    lights: Virtual point light generation
    integrator: The path tracer (scanline loop, path integrator, direct
        lighting)
    progressive: Progressive driver around the path tracer

All per-ray work runs inside Taichi kernels.
"""

from .ray import (
    Ray,
    cross,
    distance,
    dot,
    length,
    length_squared,
    make_ray,
    max_component,
    normalize,
    ray_at,
    reflect,
    refract,
    triangle_area,
    triangle_normal,
    vec3,
)

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import directly from vpltrace.core.integrator or vpltrace.core.progressive.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "distance",
    "max_component",
    "reflect",
    "refract",
    "triangle_normal",
    "triangle_area",
]
