"""Tests for the Cornell box scene module.

Tests cover:
- Scene creation and object order
- Wall, light and block geometry and orientation
- Material assignments
- Camera configuration
- Custom parameters and box size
- Ray queries and a small end-to-end render
"""

import numpy as np
import pytest


@pytest.fixture
def cornell_box_scene():
    from vpltrace.scene.cornell_box import create_cornell_box_scene

    scene = create_cornell_box_scene()
    scene.prepare()
    return scene


def _by_name(scene, name):
    obj = scene.find_object(name)
    assert obj is not None, f"missing object {name}"
    return obj


class TestSceneCreation:
    def test_object_order(self, cornell_box_scene):
        names = [obj.name for obj in cornell_box_scene.objects]
        assert names == [
            "floor",
            "ceiling",
            "back_wall",
            "left_wall",
            "right_wall",
            "light",
            "mirror_block",
            "glass_block",
        ]

    def test_face_counts(self, cornell_box_scene):
        counts = {obj.name: obj.num_faces for obj in cornell_box_scene.objects}
        assert counts["floor"] == 2
        assert counts["light"] == 2
        assert counts["mirror_block"] == 12
        assert counts["glass_block"] == 12

    def test_default_settings(self, cornell_box_scene):
        s = cornell_box_scene.settings
        assert (s.width, s.height) == (256, 256)
        assert s.rays_per_pixel == 2
        assert s.path_depth == 3
        assert cornell_box_scene.version == 1

    def test_default_settings_not_shared(self):
        from vpltrace.scene.cornell_box import DEFAULT_SETTINGS, create_cornell_box_scene

        scene = create_cornell_box_scene()
        scene.settings.width = 8
        assert DEFAULT_SETTINGS.width == 256


class TestWallGeometry:
    """Walls face into the box."""

    @pytest.mark.parametrize(
        "name,normal",
        [
            ("floor", (0.0, 1.0, 0.0)),
            ("ceiling", (0.0, -1.0, 0.0)),
            ("back_wall", (0.0, 0.0, -1.0)),
            ("left_wall", (-1.0, 0.0, 0.0)),
            ("right_wall", (1.0, 0.0, 0.0)),
            ("light", (0.0, -1.0, 0.0)),
        ],
    )
    def test_inward_normals(self, cornell_box_scene, name, normal):
        obj = _by_name(cornell_box_scene, name)
        assert np.allclose(obj.face_normals, normal)

    def test_wall_positions(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE

        assert np.allclose(_by_name(cornell_box_scene, "floor").vertices[:, 1], 0.0)
        assert np.allclose(_by_name(cornell_box_scene, "ceiling").vertices[:, 1], BOX_SIZE)
        assert np.allclose(_by_name(cornell_box_scene, "back_wall").vertices[:, 2], BOX_SIZE)
        assert np.allclose(_by_name(cornell_box_scene, "left_wall").vertices[:, 0], BOX_SIZE)
        assert np.allclose(_by_name(cornell_box_scene, "right_wall").vertices[:, 0], 0.0)

    def test_light_centred_below_ceiling(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE, LIGHT_DEPTH, LIGHT_DROP, LIGHT_WIDTH

        light = _by_name(cornell_box_scene, "light")
        light.generate_bounds()
        centre = (light.bounds_min + light.bounds_max) / 2.0

        assert abs(centre[0] - BOX_SIZE / 2.0) < 1e-9
        assert abs(centre[2] - BOX_SIZE / 2.0) < 1e-9
        assert np.allclose(light.vertices[:, 1], BOX_SIZE - LIGHT_DROP)
        assert abs(light.face_areas().sum() - LIGHT_WIDTH * LIGHT_DEPTH) < 1e-6


class TestMeshHelpers:
    def test_quad_mesh(self):
        from vpltrace.scene.cornell_box import quad_mesh

        vertices, faces = quad_mesh((1.0, 2.0, 3.0), (2.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert vertices.tolist()[2] == [3.0, 2.0, 2.0]
        assert faces.tolist() == [[0, 1, 2], [0, 2, 3]]

    def test_box_mesh_faces_outward(self):
        from vpltrace.scene.cornell_box import box_mesh
        from vpltrace.scene.model import SceneObject

        vertices, faces = box_mesh((0.0, 0.0, 0.0), (1.0, 2.0, 3.0))
        assert vertices.shape == (24, 3)
        assert faces.shape == (12, 3)

        obj = SceneObject(name="box", vertices=vertices, faces=faces)
        obj.validate()
        obj.generate_normals()
        centre = np.array([0.5, 1.0, 1.5])
        for face, normal in zip(faces, obj.face_normals):
            face_centre = vertices[face].mean(axis=0)
            assert np.dot(face_centre - centre, normal) > 0.0


class TestMaterials:
    def test_wall_colors(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import CornellBoxParams

        params = CornellBoxParams()
        assert _by_name(cornell_box_scene, "left_wall").color == params.left_wall_color
        assert _by_name(cornell_box_scene, "right_wall").color == params.right_wall_color
        for name in ("floor", "ceiling", "back_wall"):
            assert _by_name(cornell_box_scene, name).color == params.back_wall_color

    def test_only_the_light_emits(self, cornell_box_scene):
        emitters = [obj.name for obj in cornell_box_scene.objects if obj.light_source]
        assert emitters == ["light"]

    def test_mirror_block(self, cornell_box_scene):
        mirror = _by_name(cornell_box_scene, "mirror_block")
        assert mirror.diffuse == 0.0
        assert mirror.specular == 1.0
        assert mirror.perfect_specular is True

    def test_glass_block(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import GLASS_IOR

        glass = _by_name(cornell_box_scene, "glass_block")
        assert glass.transmission == 0.9
        assert glass.specular == 0.1
        assert glass.index_of_refraction == GLASS_IOR
        assert glass.absorption >= 0.0


class TestCameraConfiguration:
    def test_camera(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE

        camera = cornell_box_scene.camera
        assert camera.eye == (BOX_SIZE / 2.0, BOX_SIZE / 2.0, -BOX_SIZE)
        assert camera.direction == (0.0, 0.0, 1.0)
        assert camera.up == (0.0, 1.0, 0.0)


class TestCustomParameters:
    def test_custom_size_scales_geometry(self):
        from vpltrace.scene.cornell_box import create_cornell_box_scene

        scene = create_cornell_box_scene(box_size=10.0)
        floor = _by_name(scene, "floor")
        assert floor.vertices.max() == 10.0
        assert scene.camera.eye == (5.0, 5.0, -10.0)

    def test_light_intensity_scales_emission(self):
        from vpltrace.scene.cornell_box import CornellBoxParams, create_cornell_box_scene

        params = CornellBoxParams(light_intensity=4.0, light_color=(1.0, 0.5, 0.25))
        scene = create_cornell_box_scene(params=params)
        assert _by_name(scene, "light").color == (4.0, 2.0, 1.0)

    def test_custom_wall_colors(self):
        from vpltrace.scene.cornell_box import CornellBoxParams, create_cornell_box_scene

        params = CornellBoxParams(left_wall_color=(0.1, 0.2, 0.8))
        scene = create_cornell_box_scene(params=params)
        assert _by_name(scene, "left_wall").color == (0.1, 0.2, 0.8)

    def test_custom_settings(self):
        from vpltrace.scene.cornell_box import create_cornell_box_scene
        from vpltrace.scene.model import RenderSettings

        settings = RenderSettings(width=16, height=8)
        scene = create_cornell_box_scene(settings=settings)
        assert scene.settings is settings


class TestSceneIntegration:
    """Ray queries against the built scene."""

    def test_forward_ray_hits_back_wall(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE
        from vpltrace.scene.intersection import SceneModel

        model = SceneModel(cornell_box_scene)
        hit = model.closest_hit((0.4 * BOX_SIZE, 0.55 * BOX_SIZE, -BOX_SIZE), (0.0, 0.0, 1.0))
        assert hit is not None
        assert hit.object_index == 2
        assert abs(hit.t - 2.0 * BOX_SIZE) < 1e-2

    def test_upward_ray_hits_light(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE
        from vpltrace.scene.intersection import SceneModel

        model = SceneModel(cornell_box_scene)
        hit = model.closest_hit((0.45 * BOX_SIZE, 0.5 * BOX_SIZE, 0.52 * BOX_SIZE), (0.0, 1.0, 0.0))
        assert hit is not None
        assert hit.object_index == 5

    def test_downward_ray_hits_glass_top(self, cornell_box_scene):
        from vpltrace.scene.cornell_box import BOX_SIZE
        from vpltrace.scene.intersection import SceneModel

        model = SceneModel(cornell_box_scene)
        hit = model.closest_hit((0.3 * BOX_SIZE, 0.9 * BOX_SIZE, 0.35 * BOX_SIZE), (0.0, -1.0, 0.0))
        assert hit is not None
        assert hit.object_index == 7
        assert abs(hit.point[1] - 0.3 * BOX_SIZE) < 1e-2

    def test_small_render(self):
        from vpltrace.core.progressive import ProgressiveRenderer
        from vpltrace.scene.cornell_box import create_cornell_box_scene
        from vpltrace.scene.model import RenderSettings

        settings = RenderSettings(width=8, height=8, rays_per_pixel=1, light_samples=1, path_depth=2)
        renderer = ProgressiveRenderer.from_scene(create_cornell_box_scene(settings=settings), seed=5)
        renderer.render()

        radiance = renderer.tracer.radiance_numpy()
        assert np.all(np.isfinite(radiance))
        assert radiance.max() > 0.0
        assert renderer.get_image_uint8().max() > 0
