#!/usr/bin/env python3
"""Progressive interactive preview of a scene file (or the Cornell box).

The window refreshes after every scanline pair and keeps showing the
finished image until it is closed.

Usage:
    python examples/interactive_scene.py [scene] [--seed SEED] [--cpu]

Controls:
    - p: Export the current image to a timestamped PNG
    - Close window to exit
"""

from __future__ import annotations

import argparse
import platform
import sys

import taichi as ti


def pick_backend(force_cpu: bool) -> tuple[object, str]:
    """Taichi arch to run on, with a printable name."""
    if force_cpu:
        return ti.cpu, "CPU"
    if platform.system() == "Darwin":
        return ti.metal, "Metal"
    # ti.gpu drops back to the CPU when no GPU backend is present
    return ti.gpu, "GPU (or CPU fallback)"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive progressive preview.")
    parser.add_argument("scene", nargs="?", default=None, help="Scene description file (default: built-in Cornell box)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--cpu", action="store_true", help="Run kernels on the CPU backend")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    arch, backend = pick_backend(args.cpu)
    ti.init(arch=arch)
    print(f"Taichi backend: {backend}")

    # Kernels compile against the runtime set up above
    from vpltrace.core.progressive import ProgressiveRenderer
    from vpltrace.preview.interactive import InteractivePreview
    from vpltrace.scene.cornell_box import create_cornell_box_scene
    from vpltrace.scene.loader import SceneLoadError, load_scene

    if not InteractivePreview.is_display_available():
        print("No display found; use examples/render_scene.py for headless renders.", file=sys.stderr)
        return 1

    try:
        scene = create_cornell_box_scene() if args.scene is None else load_scene(args.scene)
    except SceneLoadError as e:
        print(f"Error loading scene (code {int(e.code)}): {e}", file=sys.stderr)
        return int(e.code)

    renderer = ProgressiveRenderer.from_scene(scene, seed=args.seed)
    preview = InteractivePreview(renderer.width, renderer.height)
    print(f"Tracing {renderer.width}x{renderer.height}; press 'p' to save, close the window to quit")

    try:
        preview.run_progressive(renderer)
    except KeyboardInterrupt:
        print("\nInterrupted.")
    finally:
        preview.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
