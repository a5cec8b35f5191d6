"""Unit tests for the ray module.

Tests cover:
- Ray dataclass and ray_at function
- Vector utility functions (dot, cross, normalize, length, distance)
- Reflection and refraction, including the total internal reflection fallback
- Triangle normal and area helpers
"""

import math

import pytest
import taichi as ti


class TestRayBasics:
    """Tests for Ray dataclass and basic operations."""

    def test_ray_at_origin(self):
        """Test ray_at returns origin when t=0."""
        from vpltrace.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(1.0, 2.0, 3.0), direction=vec3(0.0, 0.0, -1.0))
            result[None] = ray_at(ray, 0.0)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 2.0) < 1e-6
        assert abs(r[2] - 3.0) < 1e-6

    def test_make_ray(self):
        """Test make_ray convenience function."""
        from vpltrace.core.ray import make_ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 1.0, 1.0), vec3(0.0, 0.0, 1.0))
            result[None] = ray_at(ray, 2.0)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 1.0) < 1e-6
        assert abs(r[2] - 3.0) < 1e-6


class TestVectorUtilities:
    """Tests for vector utility functions."""

    def test_length(self):
        from vpltrace.core.ray import length, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = length(vec3(3.0, 4.0, 0.0))

        test_kernel()
        assert abs(result[None] - 5.0) < 1e-6

    def test_length_squared(self):
        from vpltrace.core.ray import length_squared, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = length_squared(vec3(3.0, 4.0, 0.0))

        test_kernel()
        assert abs(result[None] - 25.0) < 1e-6

    @pytest.mark.parametrize(
        "vector",
        [(3.0, 4.0, 0.0), (-1.0, 2.0, -2.0), (1e-3, 0.0, 0.0), (100.0, -50.0, 25.0)],
    )
    def test_normalize_is_idempotent(self, vector):
        """Normalizing twice leaves the unit vector unchanged."""
        from vpltrace.core.ray import length, normalize, vec3

        once = ti.field(dtype=ti.math.vec3, shape=())
        twice = ti.field(dtype=ti.math.vec3, shape=())
        once_length = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(x: ti.f32, y: ti.f32, z: ti.f32):
            n1 = normalize(vec3(x, y, z))
            once[None] = n1
            once_length[None] = length(n1)
            twice[None] = normalize(n1)

        test_kernel(*vector)
        assert abs(once_length[None] - 1.0) < 1e-5
        for i in range(3):
            assert abs(once[None][i] - twice[None][i]) < 1e-6

    def test_dot_and_cross(self):
        from vpltrace.core.ray import cross, dot, vec3

        dot_result = ti.field(dtype=ti.f32, shape=())
        cross_result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            dot_result[None] = dot(vec3(1.0, 2.0, 3.0), vec3(4.0, -5.0, 6.0))
            cross_result[None] = cross(vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        assert abs(dot_result[None] - 12.0) < 1e-6
        c = cross_result[None]
        assert abs(c[0]) < 1e-6 and abs(c[1]) < 1e-6 and abs(c[2] - 1.0) < 1e-6

    def test_distance_and_max_component(self):
        from vpltrace.core.ray import distance, max_component, vec3

        dist = ti.field(dtype=ti.f32, shape=())
        biggest = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            dist[None] = distance(vec3(1.0, 1.0, 1.0), vec3(4.0, 5.0, 1.0))
            biggest[None] = max_component(vec3(-2.0, 7.5, 3.0))

        test_kernel()
        assert abs(dist[None] - 5.0) < 1e-6
        assert abs(biggest[None] - 7.5) < 1e-6


class TestReflect:
    """Tests for mirror reflection."""

    def test_reflect_straight_down(self):
        from vpltrace.core.ray import reflect, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0]) < 1e-6 and abs(r[1] - 1.0) < 1e-6 and abs(r[2]) < 1e-6

    def test_reflect_round_trip(self):
        """Reflecting twice about the same normal returns the original direction."""
        from vpltrace.core.ray import normalize, reflect, vec3

        original = ti.field(dtype=ti.math.vec3, shape=())
        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            d = normalize(vec3(0.3, -0.8, 0.5))
            n = normalize(vec3(0.1, 1.0, -0.2))
            original[None] = d
            result[None] = reflect(reflect(d, n), n)

        test_kernel()
        for i in range(3):
            assert abs(result[None][i] - original[None][i]) < 1e-5


class TestRefract:
    """Tests for Snell refraction."""

    def test_normal_incidence_passes_straight(self):
        from vpltrace.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            # Light vector points back toward the viewer above the surface
            result[None] = refract(vec3(0.0, 1.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0, 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0]) < 1e-6 and abs(r[1] + 1.0) < 1e-6 and abs(r[2]) < 1e-6

    def test_oblique_incidence_obeys_snell(self):
        """sin(theta_t) = sin(theta_i) / ior when entering a denser medium."""
        from vpltrace.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())
        theta = math.radians(40.0)

        @ti.kernel
        def test_kernel(sx: ti.f32, cy: ti.f32):
            result[None] = refract(vec3(sx, cy, 0.0), vec3(0.0, 1.0, 0.0), 1.0, 1.5)

        test_kernel(math.sin(theta), math.cos(theta))
        r = result[None]
        length = math.sqrt(r[0] ** 2 + r[1] ** 2 + r[2] ** 2)
        assert abs(length - 1.0) < 1e-5
        assert r[1] < 0.0
        # Transmitted ray continues away from the light side
        assert abs(abs(r[0]) - math.sin(theta) / 1.5) < 1e-5

    def test_total_internal_reflection_falls_back_to_mirror(self):
        """Leaving a dense medium at a grazing angle returns 2 cos_i n - l."""
        from vpltrace.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())
        theta = math.radians(70.0)

        @ti.kernel
        def test_kernel(sx: ti.f32, cy: ti.f32):
            # Light arrives from inside: cos_i < 0 selects inner / outer
            result[None] = refract(vec3(sx, -cy, 0.0), vec3(0.0, 1.0, 0.0), 1.0, 1.5)

        test_kernel(math.sin(theta), math.cos(theta))
        r = result[None]
        cos_i = -math.cos(theta)
        expected = (-math.sin(theta), 2.0 * cos_i + math.cos(theta), 0.0)
        for i in range(3):
            assert abs(r[i] - expected[i]) < 1e-5


class TestTriangleHelpers:
    """Tests for triangle normal and area."""

    def test_triangle_normal_not_normalized(self):
        from vpltrace.core.ray import triangle_normal, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = triangle_normal(
                vec3(0.0, 0.0, 0.0), vec3(2.0, 0.0, 0.0), vec3(0.0, 2.0, 0.0)
            )

        test_kernel()
        n = result[None]
        assert abs(n[0]) < 1e-6 and abs(n[1]) < 1e-6 and abs(n[2] - 4.0) < 1e-6

    def test_triangle_area(self):
        from vpltrace.core.ray import triangle_area, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = triangle_area(
                vec3(0.0, 0.0, 0.0), vec3(3.0, 0.0, 0.0), vec3(0.0, 4.0, 0.0)
            )

        test_kernel()
        assert abs(result[None] - 6.0) < 1e-6
