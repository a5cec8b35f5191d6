"""Ray data structure and 3-vector algebra for the path tracer.

This module provides the Ray dataclass and the fixed-length vector
operations used by the geometric query engine and the integrator. All
operations are Taichi functions returning new values; nothing is written
through aliased buffers, so "in-place" use is simply rebinding the result.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.core.ray import Ray, ray_at, vec3
    >>> # Use within a Taichi kernel:
    >>> # ray = Ray(origin=vec3(0.0), direction=vec3(0.0, 0.0, -1.0))
    >>> # point = ray_at(ray, 5.0)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Camera rays are
            normalized; shadow segments deliberately are not.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector.

    Cheaper than length() when only comparing magnitudes.
    """
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Scale a vector to unit length.

    The vector is divided by its length. Zero-length input is not guarded
    and yields NaN components; callers must pass non-degenerate vectors.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v.
    """
    return v / tm.sqrt(tm.dot(v, v))


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product a . b."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product a x b."""
    return tm.cross(a, b)


@ti.func
def distance(a: vec3, b: vec3) -> ti.f32:
    """Compute the Euclidean distance between two points."""
    return tm.length(a - b)


@ti.func
def max_component(v: vec3) -> ti.f32:
    """Return the largest of the three components of v."""
    return ti.max(v.x, ti.max(v.y, v.z))


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Computes r = l - 2 (n . l) n.

    Args:
        incident: The incoming direction, pointing toward the surface.
        normal: The surface normal (must be unit length).

    Returns:
        The mirror direction, pointing away from the surface.
    """
    return incident - 2.0 * tm.dot(normal, incident) * normal


@ti.func
def refract(light: vec3, normal: vec3, outer_ior: ti.f32, inner_ior: ti.f32) -> vec3:
    """Refract a direction through a surface using Snell's law.

    The light vector points away from the surface, back along the ray that
    arrived. The sign of cos_i = n . l selects the side: on the normal's side
    the ratio is outer_ior / inner_ior, otherwise inner_ior / outer_ior.

    When the discriminant 1 - b^2 (1 - cos_i^2) is negative (total internal
    reflection) the result is 2 cos_i n - l, the mirror image of the light
    vector, instead of a failure value.

    Args:
        light: Unit vector from the surface toward where the ray came from.
        normal: The surface normal (must be unit length).
        outer_ior: Index of refraction on the normal's side.
        inner_ior: Index of refraction behind the surface.

    Returns:
        The transmitted direction, or the reflection fallback.
    """
    cos_i = tm.dot(normal, light)
    b = outer_ior / inner_ior
    if cos_i < 0.0:
        b = inner_ior / outer_ior
    cos_r = 1.0 - (b * b) * (1.0 - cos_i * cos_i)

    result = 2.0 * cos_i * normal - light
    if cos_r >= 0.0:
        a = b * cos_i - ti.sqrt(cos_r)
        if cos_i < 0.0:
            a = b * cos_i + ti.sqrt(cos_r)
        result = a * normal - b * light
    return result


# =============================================================================
# Triangle Helpers
# =============================================================================


@ti.func
def triangle_normal(v0: vec3, v1: vec3, v2: vec3) -> vec3:
    """Compute the (unnormalized) normal of a triangle.

    The result is (v1 - v0) x (v2 - v0), following the right-hand rule over
    the vertices in declared order. Its length is twice the triangle area.
    """
    return tm.cross(v1 - v0, v2 - v0)


@ti.func
def triangle_area(v0: vec3, v1: vec3, v2: vec3) -> ti.f32:
    """Compute the area of a triangle as half the cross product length."""
    return tm.length(triangle_normal(v0, v1, v2)) / 2.0
