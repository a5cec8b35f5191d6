"""Pytest configuration for vpltrace tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session, and small
scene builders shared by the scene, integrator and preview tests.
"""

import numpy as np
import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


def unit_square(y: float, facing_up: bool):
    """Vertices and faces of the unit square [0,1]x[0,1] in the plane y."""
    vertices = np.array(
        [[0.0, y, 0.0], [0.0, y, 1.0], [1.0, y, 1.0], [1.0, y, 0.0]], dtype=np.float64
    )
    if facing_up:
        faces = np.array([[0, 1, 2], [0, 2, 3]])
    else:
        faces = np.array([[0, 2, 1], [0, 3, 2]])
    return vertices, faces


@pytest.fixture
def make_floor_and_light_scene():
    """Factory for an upward-facing floor lit by a downward-facing square.

    The floor is the unit square at y=0 and the light the unit square at
    y=1. The camera looks straight down from above the light; camera rays
    pass through the back of the light and reach the floor.
    """
    from vpltrace.camera.pinhole import PinholeCamera
    from vpltrace.scene.model import RenderSettings, Scene, SceneObject

    def _make(
        width: int = 4,
        height: int = 4,
        path_depth: int = 1,
        light_samples: int = 2,
        light_sample_ratio: float = 1.0,
        rays_per_pixel: int = 1,
        floor_material: dict | None = None,
        include_light: bool = True,
    ) -> Scene:
        floor_vertices, floor_faces = unit_square(0.0, facing_up=True)
        floor = SceneObject(
            name="floor",
            vertices=floor_vertices,
            faces=floor_faces,
            color=(0.8, 0.8, 0.8),
            **(floor_material or {}),
        )
        objects = [floor]
        if include_light:
            light_vertices, light_faces = unit_square(1.0, facing_up=False)
            objects.append(
                SceneObject(
                    name="light",
                    vertices=light_vertices,
                    faces=light_faces,
                    color=(1.0, 1.0, 1.0),
                    light_source=True,
                )
            )
        return Scene(
            objects=objects,
            camera=PinholeCamera(eye=(0.5, 2.0, 0.5), direction=(0.0, -1.0, 0.0), up=(0.0, 0.0, 1.0)),
            settings=RenderSettings(
                width=width,
                height=height,
                rays_per_pixel=rays_per_pixel,
                light_samples=light_samples,
                light_sample_ratio=light_sample_ratio,
                path_depth=path_depth,
            ),
        )

    return _make


@pytest.fixture
def square_mesh():
    """The unit_square helper, for tests that build their own objects."""
    return unit_square
