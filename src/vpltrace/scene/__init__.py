"""Scene module: data model, loading and ray queries.

Components:
    model: Scene, SceneObject and RenderSettings with host-side derivation
    loader: Text scene-description parser
    intersection: Taichi-resident SceneModel with closest-hit and shadow
        queries
    cornell_box: Cornell box scene factory

Scene data is organized for efficient kernel access:
    - Structure-of-Arrays layout for geometry and materials
    - Flat vertex and face fields with per-object face ranges
"""

from .cornell_box import BOX_SIZE, CornellBoxParams, create_cornell_box_scene
from .intersection import HitResult, SceneHit, SceneModel
from .loader import (
    LoadErrorCode,
    SceneLoadError,
    load_scene,
    parse_scene,
)
from .model import RenderSettings, Scene, SceneObject, SceneValidationError

__all__ = [
    # Model
    "Scene",
    "SceneObject",
    "RenderSettings",
    "SceneValidationError",
    # Loader
    "load_scene",
    "parse_scene",
    "LoadErrorCode",
    "SceneLoadError",
    # Intersection
    "SceneModel",
    "SceneHit",
    "HitResult",
    # Cornell box
    "create_cornell_box_scene",
    "CornellBoxParams",
    "BOX_SIZE",
]
