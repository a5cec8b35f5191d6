"""Text scene-description loader.

Scene files are line oriented and case-insensitive. Blank lines and lines
starting with ``#`` are ignored. The first remaining line must be the
header ``vpltrace scene``; every other line is ``key=value``.

Global keys set the camera and render settings. ``object=<name>`` starts
a new object, and the material keys that follow apply to it. Geometry is
supplied separately by an ``objectdef=<name>`` line followed by exactly
as many vertex lines and then face lines as the object declared::

    vpltrace scene
    eye=0.5 2 0.5
    direction=0 -1 0
    up=0 0 1
    width=64
    height=64

    object=floor
    colour=0.8 0.8 0.8
    vertices=4
    faces=2

    objectdef=floor
    0 0 0
    0 0 1
    1 0 1
    1 0 0
    0 1 2
    0 2 3

The object's ``translation`` is added to every vertex as it is read.

Example:
    >>> from vpltrace.scene.loader import load_scene
    >>> scene = load_scene("scenes/cornell.scene")
    >>> scene.num_objects
    8
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

import numpy as np

from vpltrace.scene.model import Scene, SceneObject, SceneValidationError

logger = logging.getLogger(__name__)

SCENE_HEADER = "vpltrace scene"


class LoadErrorCode(IntEnum):
    """Distinct failure codes reported by the loader."""

    UNREADABLE_FILE = 1
    BAD_HEADER = 2
    MALFORMED_LINE = 3
    NO_CURRENT_OBJECT = 4
    UNDEFINED_OBJECT = 5
    UNKNOWN_ATTRIBUTE = 6
    OBJECT_COUNT_MISMATCH = 7
    INVALID_SCENE = 8


class SceneLoadError(Exception):
    """Base class for scene loading failures.

    Attributes:
        code: The LoadErrorCode identifying the failure.
        line_number: 1-based line in the source text, when known.
    """

    code = LoadErrorCode.MALFORMED_LINE

    def __init__(self, message: str, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class UnreadableFileError(SceneLoadError):
    code = LoadErrorCode.UNREADABLE_FILE


class BadHeaderError(SceneLoadError):
    code = LoadErrorCode.BAD_HEADER


class MalformedLineError(SceneLoadError):
    code = LoadErrorCode.MALFORMED_LINE


class NoCurrentObjectError(SceneLoadError):
    code = LoadErrorCode.NO_CURRENT_OBJECT


class UndefinedObjectError(SceneLoadError):
    code = LoadErrorCode.UNDEFINED_OBJECT


class UnknownAttributeError(SceneLoadError):
    code = LoadErrorCode.UNKNOWN_ATTRIBUTE


class ObjectCountMismatchError(SceneLoadError):
    code = LoadErrorCode.OBJECT_COUNT_MISMATCH


class InvalidSceneError(SceneLoadError):
    code = LoadErrorCode.INVALID_SCENE


@dataclass
class _PendingObject:
    """An object declaration collected before its geometry is read."""

    obj: SceneObject
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    num_vertices: int = 0
    num_faces: int = 0
    defined: bool = False


@dataclass
class _Line:
    number: int
    text: str


@dataclass
class _ParseState:
    scene: Scene = field(default_factory=Scene)
    pending: list[_PendingObject] = field(default_factory=list)
    current: _PendingObject | None = None
    target: tuple[float, float, float] | None = None


def _parse_float(value: str, line: _Line) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise MalformedLineError(f"expected a number, got '{value}'", line.number) from e


def _parse_int(value: str, line: _Line) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise MalformedLineError(f"expected an integer, got '{value}'", line.number) from e


def _parse_triple(value: str, line: _Line) -> tuple[float, float, float]:
    parts = value.split()
    if len(parts) != 3:
        raise MalformedLineError(f"expected three numbers, got '{value}'", line.number)
    return (
        _parse_float(parts[0], line),
        _parse_float(parts[1], line),
        _parse_float(parts[2], line),
    )


def _parse_bool(value: str) -> bool:
    return value == "true"


def _apply_global(state: _ParseState, key: str, value: str, line: _Line) -> bool:
    """Apply a global key. Returns False if the key is not a global key."""
    settings = state.scene.settings
    camera = state.scene.camera

    if key == "version":
        state.scene.version = _parse_int(value, line)
    elif key == "eye":
        camera.eye = _parse_triple(value, line)
    elif key == "direction":
        camera.direction = _parse_triple(value, line)
        state.target = None
    elif key == "target":
        state.target = _parse_triple(value, line)
    elif key == "up":
        camera.up = _parse_triple(value, line)
    elif key == "width":
        settings.width = _parse_int(value, line)
    elif key == "height":
        settings.height = _parse_int(value, line)
    elif key == "lightsamples":
        settings.light_samples = _parse_int(value, line)
    elif key == "lightsampleratio":
        settings.light_sample_ratio = _parse_float(value, line)
    elif key == "raysperpixel":
        settings.rays_per_pixel = _parse_int(value, line)
    elif key == "pathdepth":
        settings.path_depth = _parse_int(value, line)
    elif key == "saturation":
        settings.saturation = _parse_float(value, line)
    else:
        return False
    return True


_OBJECT_KEYS = frozenset(
    {
        "diffuse",
        "specular",
        "transmission",
        "indexofrefraction",
        "specularindex",
        "perfectspecular",
        "translation",
        "colour",
        "color",
        "lightsource",
        "smooth",
        "vertices",
        "faces",
    }
)


def _apply_object(pending: _PendingObject, key: str, value: str, line: _Line) -> None:
    obj = pending.obj
    if key == "diffuse":
        obj.diffuse = _parse_float(value, line)
    elif key == "specular":
        obj.specular = _parse_float(value, line)
    elif key == "transmission":
        obj.transmission = _parse_float(value, line)
    elif key == "indexofrefraction":
        obj.index_of_refraction = _parse_float(value, line)
    elif key == "specularindex":
        obj.specular_index = _parse_float(value, line)
    elif key == "perfectspecular":
        obj.perfect_specular = _parse_bool(value)
    elif key == "translation":
        pending.translation = _parse_triple(value, line)
    elif key in ("colour", "color"):
        obj.color = _parse_triple(value, line)
    elif key == "lightsource":
        obj.light_source = _parse_bool(value)
    elif key == "smooth":
        obj.smooth = _parse_bool(value)
    elif key == "vertices":
        pending.num_vertices = _parse_int(value, line)
    elif key == "faces":
        pending.num_faces = _parse_int(value, line)


def _read_rows(lines: list[_Line], start: int, count: int, name: str, kind: str) -> list[list[str]]:
    """Read count whitespace-separated triples beginning at lines[start]."""
    if start + count > len(lines):
        last = lines[-1].number if lines else None
        raise MalformedLineError(
            f"object '{name}' ends before its {count} {kind} lines", last
        )
    rows = []
    for line in lines[start : start + count]:
        parts = line.text.split()
        if len(parts) != 3:
            raise MalformedLineError(
                f"object '{name}': expected three {kind} values, got '{line.text}'",
                line.number,
            )
        rows.append(parts)
    return rows


def _read_geometry(
    pending: _PendingObject, lines: list[_Line], start: int
) -> int:
    """Read an objectdef block. Returns the index of the first unread line."""
    name = pending.obj.name

    vertex_rows = _read_rows(lines, start, pending.num_vertices, name, "vertex")
    vertices = np.zeros((pending.num_vertices, 3), dtype=np.float64)
    for i, parts in enumerate(vertex_rows):
        line = lines[start + i]
        vertices[i] = [_parse_float(p, line) for p in parts]
    vertices += np.asarray(pending.translation, dtype=np.float64)

    face_start = start + pending.num_vertices
    face_rows = _read_rows(lines, face_start, pending.num_faces, name, "face")
    faces = np.zeros((pending.num_faces, 3), dtype=np.int64)
    for i, parts in enumerate(face_rows):
        line = lines[face_start + i]
        faces[i] = [_parse_int(p, line) for p in parts]

    pending.obj.vertices = vertices
    pending.obj.faces = faces
    pending.defined = True
    return face_start + pending.num_faces


def parse_scene(text: str) -> Scene:
    """Parse scene-description text into a validated Scene.

    Args:
        text: Full contents of a scene file.

    Returns:
        The Scene, with geometry in world space. Normals and bounds are not
        derived yet; SceneModel does that.

    Raises:
        SceneLoadError: A subclass whose ``code`` identifies the failure.
    """
    lines = [
        _Line(number, raw.strip().lower())
        for number, raw in enumerate(text.splitlines(), start=1)
        if raw.strip() and not raw.strip().startswith("#")
    ]
    if not lines or lines[0].text != SCENE_HEADER:
        found = lines[0].text if lines else "<empty>"
        raise BadHeaderError(
            f"expected header '{SCENE_HEADER}', found '{found}'",
            lines[0].number if lines else None,
        )

    # Keep original-case object names
    original_text = text.splitlines()

    state = _ParseState()
    index = 1
    while index < len(lines):
        line = lines[index]
        index += 1

        if "=" not in line.text:
            raise MalformedLineError(f"expected key=value, got '{line.text}'", line.number)
        key, _, value = line.text.partition("=")
        key = key.strip()
        value = value.strip()

        if _apply_global(state, key, value, line):
            continue

        if key == "object":
            raw = original_text[line.number - 1]
            name = raw.partition("=")[2].strip()
            state.current = _PendingObject(obj=SceneObject(name=name))
            state.pending.append(state.current)
        elif key in _OBJECT_KEYS:
            if state.current is None:
                raise NoCurrentObjectError(
                    f"'{key}' appears before any object declaration", line.number
                )
            _apply_object(state.current, key, value, line)
        elif key == "objectdef":
            match = None
            for pending in state.pending:
                if pending.obj.name.lower() == value:
                    match = pending
            if match is None:
                raise UndefinedObjectError(
                    f"objectdef for undeclared object '{value}'", line.number
                )
            index = _read_geometry(match, lines, index)
        else:
            raise UnknownAttributeError(f"unknown attribute '{key}'", line.number)

    num_defined = sum(1 for pending in state.pending if pending.defined)
    if num_defined != len(state.pending):
        missing = [p.obj.name for p in state.pending if not p.defined]
        raise ObjectCountMismatchError(
            f"{len(state.pending)} objects declared but {num_defined} defined "
            f"(missing: {', '.join(missing)})"
        )

    scene = state.scene
    if state.target is not None:
        scene.camera.direction = (
            state.target[0] - scene.camera.eye[0],
            state.target[1] - scene.camera.eye[1],
            state.target[2] - scene.camera.eye[2],
        )
    scene.objects = [pending.obj for pending in state.pending]

    try:
        scene.validate()
    except SceneValidationError as e:
        raise InvalidSceneError(str(e)) from e

    logger.debug(
        "Parsed scene: %d objects, %d faces, %dx%d",
        scene.num_objects,
        sum(obj.num_faces for obj in scene.objects),
        scene.settings.width,
        scene.settings.height,
    )
    return scene


def load_scene(path: str | Path) -> Scene:
    """Load and validate a scene file.

    Args:
        path: Path to the scene file.

    Returns:
        The parsed Scene.

    Raises:
        SceneLoadError: A subclass whose ``code`` identifies the failure.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise UnreadableFileError(f"cannot read scene file '{path}': {e}") from e

    logger.debug("Loading scene from %s", path)
    return parse_scene(text)
