"""Ray/axis-aligned bounding box slab test.

A cheap trivial-rejection filter run before the per-triangle loop of an
object. It never replaces the triangle test: a box hit only means the
object's faces must be examined.

The algorithm finds, for every axis on which the origin lies outside the
box, the parameter t at which the ray reaches the nearer slab plane. The
largest of those candidates is the only plane the ray can enter the box
through; the hit point on that plane is then checked against the other two
slabs, widened by AABB_EPSILON.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.geometry.aabb import ray_aabb
    >>> # Use within a Taichi kernel:
    >>> # hit, coord = ray_aabb(box_min, box_max, origin, direction)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Tolerance applied to the non-selected slabs
AABB_EPSILON = 1e-5

# Candidate value for axes with no slab to enter
_NO_CANDIDATE = -1.0


@ti.func
def ray_aabb(box_min: vec3, box_max: vec3, origin: vec3, direction: vec3):
    """Test a ray against an axis-aligned bounding box.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        origin: Ray origin.
        direction: Ray direction (need not be normalized).

    Returns:
        A tuple (hit, coord) where hit is 1 if the ray reaches the box and
        coord is the entry point. When the origin is inside the box, coord
        is the origin itself.
    """
    inside = 1
    coord = origin
    max_t = vec3(_NO_CANDIDATE, _NO_CANDIDATE, _NO_CANDIDATE)

    # Find candidate planes
    for axis in ti.static(range(3)):
        if origin[axis] < box_min[axis]:
            coord[axis] = box_min[axis]
            inside = 0
            if direction[axis] != 0.0:
                max_t[axis] = (box_min[axis] - origin[axis]) / direction[axis]
        elif origin[axis] > box_max[axis]:
            coord[axis] = box_max[axis]
            inside = 0
            if direction[axis] != 0.0:
                max_t[axis] = (box_max[axis] - origin[axis]) / direction[axis]

    hit = 1
    if inside == 0:
        # Largest candidate picks the entry plane
        which_plane = 0
        best_t = max_t[0]
        if max_t[1] > best_t:
            which_plane = 1
            best_t = max_t[1]
        if max_t[2] > best_t:
            which_plane = 2
            best_t = max_t[2]

        if best_t < 0.0:
            hit = 0
        else:
            for axis in ti.static(range(3)):
                if axis != which_plane:
                    coord[axis] = origin[axis] + best_t * direction[axis]
                    if (
                        coord[axis] < box_min[axis] - AABB_EPSILON
                        or coord[axis] > box_max[axis] + AABB_EPSILON
                    ):
                        hit = 0

    return hit, coord
