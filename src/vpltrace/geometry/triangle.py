"""Ray-triangle intersection (Moller-Trumbore).

The test works in barycentric space without precomputing the triangle
plane. Only front faces are hit: the signed determinant must be positive,
which holds when the ray travels against the face normal given by the
right-hand rule over the vertices in declared order.

Hits closer than T_EPSILON are rejected so that a ray leaving a surface
does not immediately re-hit it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.geometry.triangle import hit_triangle
    >>> # Use within a Taichi kernel:
    >>> # hit, t, u, v = hit_triangle(v0, v1, v2, origin, direction)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Minimum accepted ray parameter (self-intersection guard)
T_EPSILON = 1e-4


@ti.dataclass
class TriangleHit:
    """Result of a single ray-triangle test.

    Attributes:
        hit: 1 if the ray hits the front face beyond T_EPSILON, else 0.
        t: Ray parameter of the hit point.
        u: Barycentric weight of the second vertex.
        v: Barycentric weight of the third vertex. The first vertex has
            weight 1 - u - v.
    """

    hit: ti.i32
    t: ti.f32
    u: ti.f32
    v: ti.f32


@ti.func
def hit_triangle(v0: vec3, v1: vec3, v2: vec3, origin: vec3, direction: vec3) -> TriangleHit:
    """Test for a front-facing ray-triangle intersection.

    Degenerate configurations (ray parallel to the plane, back faces,
    zero-area triangles) report a miss.

    Args:
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        origin: Ray origin.
        direction: Ray direction. Need not be normalized; t is measured in
            units of its length.

    Returns:
        A TriangleHit. Check the hit field before using t, u or v.
    """
    result = TriangleHit(hit=0, t=-1.0, u=-1.0, v=-1.0)

    edge1 = v1 - v0
    edge2 = v2 - v0
    p_vec = tm.cross(direction, edge2)
    det = tm.dot(edge1, p_vec)

    if det > 0.0:
        t_vec = origin - v0
        u = tm.dot(t_vec, p_vec)
        if u >= 0.0 and u <= det:
            q_vec = tm.cross(t_vec, edge1)
            v = tm.dot(direction, q_vec)
            if v >= 0.0 and u + v <= det:
                inv_det = 1.0 / det
                t = tm.dot(edge2, q_vec) * inv_det
                if t >= T_EPSILON:
                    result = TriangleHit(hit=1, t=t, u=u * inv_det, v=v * inv_det)

    return result
