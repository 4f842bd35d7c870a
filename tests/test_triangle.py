"""Unit tests for triangle intersection and bounding boxes.

Tests cover:
- Hits through the interior and barycentric weights
- Misses outside the edges and parallel rays
- Front and back faces
- Smooth normal interpolation
- AABB construction and the slab test never rejecting a real hit
"""

import numpy as np
import taichi as ti


class TestTriangleIntersection:
    """Tests for Moller-Trumbore ray-triangle intersection."""

    def test_hit_through_centroid(self):
        """Test a ray through the centroid: equal weights summing to one."""
        from raycaster.core.ray import make_ray
        from raycaster.geometry.triangle import Triangle, hit_triangle, triangle_centroid, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        bary = ti.field(dtype=ti.math.vec3, shape=())
        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            tri = Triangle(
                v0=vec3(-1.0, -1.0, -3.0), v1=vec3(1.0, -1.0, -3.0), v2=vec3(0.0, 1.0, -3.0)
            )
            c = triangle_centroid(tri)
            ray = make_ray(vec3(c.x, c.y, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            rec = hit_triangle(ray, tri)
            hit[None] = rec.hit
            t_val[None] = rec.t
            bary[None] = rec.barycentric
            normal[None] = rec.normal
            front_face[None] = rec.front_face

        test_kernel()
        assert hit[None] == 1
        assert abs(t_val[None] - 3.0) < 1e-5
        b = bary[None]
        assert abs(b[0] + b[1] + b[2] - 1.0) < 1e-5
        for k in range(3):
            assert abs(b[k] - 1.0 / 3.0) < 1e-5
        # Counter-clockwise seen from +Z: geometric normal +Z faces the ray
        assert abs(normal[None][2] - 1.0) < 1e-5
        assert front_face[None] == 1

    def test_back_face_flips_normal(self):
        """Test a ray hitting the back side of the triangle."""
        from raycaster.core.ray import make_ray
        from raycaster.geometry.triangle import Triangle, hit_triangle, vec3

        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            tri = Triangle(
                v0=vec3(-1.0, -1.0, -3.0), v1=vec3(1.0, -1.0, -3.0), v2=vec3(0.0, 1.0, -3.0)
            )
            ray = make_ray(vec3(0.0, 0.0, -6.0), vec3(0.0, 0.0, 1.0), 0.0, 100.0)
            rec = hit_triangle(ray, tri)
            normal[None] = rec.normal
            front_face[None] = rec.front_face

        test_kernel()
        assert abs(normal[None][2] - (-1.0)) < 1e-5
        assert front_face[None] == 0

    def test_misses(self):
        """Test rays outside the edges, parallel to the plane and out of range."""
        from raycaster.core.ray import make_ray
        from raycaster.geometry.triangle import Triangle, hit_triangle, vec3

        hits = ti.Vector.field(3, dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            tri = Triangle(
                v0=vec3(-1.0, -1.0, -3.0), v1=vec3(1.0, -1.0, -3.0), v2=vec3(0.0, 1.0, -3.0)
            )
            outside = make_ray(vec3(2.0, 2.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            parallel = make_ray(vec3(0.0, 0.0, -3.0), vec3(1.0, 0.0, 0.0), 0.0, 100.0)
            too_far = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 2.0)
            hits[None] = ti.Vector(
                [
                    hit_triangle(outside, tri).hit,
                    hit_triangle(parallel, tri).hit,
                    hit_triangle(too_far, tri).hit,
                ]
            )

        test_kernel()
        h = hits[None]
        assert (h[0], h[1], h[2]) == (0, 0, 0)

    def test_interpolate_normal_faces_ray(self):
        """Test that the blended normal is normalized and on the facing side."""
        from raycaster.geometry.triangle import interpolate_normal, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            # Vertex normals point away from the facing side
            n = vec3(0.0, 0.0, -1.0)
            result[None] = interpolate_normal(
                vec3(0.2, 0.3, 0.5), n, n, vec3(0.0, 0.6, -0.8), vec3(0.0, 0.0, 1.0)
            )

        test_kernel()
        r = result[None]
        assert abs(np.linalg.norm([r[0], r[1], r[2]]) - 1.0) < 1e-5
        assert r[2] > 0.0


class TestTriangleAabb:
    """Tests for bounding boxes and the slab test."""

    def test_compute_aabb_is_vertex_min_max(self):
        """Test that the box is the component-wise min and max of the vertices."""
        from raycaster.geometry.aabb import compute_aabb
        from raycaster.geometry.triangle import Triangle, vec3

        lo = ti.field(dtype=ti.math.vec3, shape=())
        hi = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            box = compute_aabb(
                Triangle(v0=vec3(1.0, -2.0, 3.0), v1=vec3(-1.0, 4.0, 0.0), v2=vec3(0.5, 0.0, -5.0))
            )
            lo[None] = box.min_corner
            hi[None] = box.max_corner

        test_kernel()
        lo_v = lo[None]
        hi_v = hi[None]
        assert (lo_v[0], lo_v[1], lo_v[2]) == (-1.0, -2.0, -5.0)
        assert (hi_v[0], hi_v[1], hi_v[2]) == (1.0, 4.0, 3.0)

    def test_box_never_rejects_a_triangle_hit(self):
        """Test random rays: every triangle hit also passes the box test."""
        from raycaster.core.ray import make_ray
        from raycaster.core.sampler import next_float, pixel_seed, random_unit_vector
        from raycaster.geometry.aabb import compute_aabb, hit_aabb
        from raycaster.geometry.triangle import Triangle, hit_triangle, vec3

        n = 20000
        false_negatives = ti.field(dtype=ti.i32, shape=())
        triangle_hits = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            # Axis-aligned triangle: its box has zero thickness along z
            tri = Triangle(
                v0=vec3(-1.0, -1.0, -2.0), v1=vec3(1.0, -1.0, -2.0), v2=vec3(-1.0, 1.0, -2.0)
            )
            box = compute_aabb(tri)
            for i in range(n):
                state = pixel_seed(i, 0, n, 0, 7)
                ox, state = next_float(state)
                oy, state = next_float(state)
                origin = vec3(ox * 4.0 - 2.0, oy * 4.0 - 2.0, 0.0)
                target_x, state = next_float(state)
                target_y, state = next_float(state)
                target = vec3(target_x * 2.4 - 1.2, target_y * 2.4 - 1.2, -2.0)
                direction = (target - origin).normalized()
                jitter, state = random_unit_vector(state)
                if i % 4 == 0:
                    # Some rays skim the plane from the side
                    direction = (direction + 0.2 * jitter).normalized()
                ray = make_ray(origin, direction, 0.0, 100.0)
                if hit_triangle(ray, tri).hit == 1:
                    triangle_hits[None] += 1
                    if hit_aabb(ray, box) == 0:
                        false_negatives[None] += 1

        test_kernel()
        assert triangle_hits[None] > 0
        assert false_negatives[None] == 0

    def test_box_rejects_clear_miss(self):
        """Test that a ray far from the box is rejected."""
        from raycaster.core.ray import make_ray
        from raycaster.geometry.aabb import Aabb, hit_aabb
        from raycaster.geometry.triangle import vec3

        result = ti.Vector.field(2, dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            box = Aabb(min_corner=vec3(-1.0, -1.0, -3.0), max_corner=vec3(1.0, 1.0, -2.0))
            miss = make_ray(vec3(5.0, 5.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            hit = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
            result[None] = ti.Vector([hit_aabb(miss, box), hit_aabb(hit, box)])

        test_kernel()
        assert result[None][0] == 0
        assert result[None][1] == 1
