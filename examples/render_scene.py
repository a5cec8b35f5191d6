#!/usr/bin/env python3
"""Render a scene file (or the built-in Cornell box) to a PNG.

The image is traced two scanlines at a time; progress is printed after
every step.

Usage:
    python examples/render_scene.py [scene] [options]

Options:
    scene               Scene description file (default: built-in Cornell box)
    --width WIDTH       Override the image width in pixels
    --height HEIGHT     Override the image height in pixels
    --seed SEED         Random seed (default: fresh entropy)
    --output OUTPUT     Output file path (default: render.png)
    --cpu               Force the CPU backend
    --quiet             Suppress progress output

Example:
    python examples/render_scene.py examples/scenes/pyramid.scene --seed 1
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a scene with the virtual-point-light path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "scene",
        nargs="?",
        default=None,
        help="Scene description file (default: built-in Cornell box)",
    )
    parser.add_argument("--width", type=int, default=None, help="Override the image width")
    parser.add_argument("--height", type=int, default=None, help="Override the image height")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--output",
        type=str,
        default="render.png",
        help="Output file path (default: render.png)",
    )
    parser.add_argument("--cpu", action="store_true", help="Force the CPU backend")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_scene(
    scene_path: str | None = None,
    width: int | None = None,
    height: int | None = None,
    seed: int | None = None,
    output_path: str = "render.png",
    quiet: bool = False,
) -> Path:
    """Render a scene and save it to file.

    Args:
        scene_path: Scene description file, or None for the Cornell box.
        width: Image width override.
        height: Image height override.
        seed: Random seed.
        output_path: Output file path (PNG).
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from vpltrace.core.progressive import ProgressiveRenderer
    from vpltrace.scene.cornell_box import create_cornell_box_scene
    from vpltrace.scene.loader import load_scene

    if scene_path is None:
        scene = create_cornell_box_scene()
        label = "Cornell box"
    else:
        scene = load_scene(scene_path)
        label = scene_path

    if width is not None:
        scene.settings.width = width
    if height is not None:
        scene.settings.height = height

    s = scene.settings
    if not quiet:
        print(
            f"Rendering {label} ({s.width}x{s.height}, {s.rays_per_pixel**2} rays/pixel, "
            f"depth {s.path_depth})..."
        )

    start_time = time.time()
    renderer = ProgressiveRenderer.from_scene(scene, seed=seed)
    if not quiet:
        print(f"  {renderer.tracer.num_vpls} virtual point lights")

    def progress_callback(progress: float) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            print(
                f"\r  Progress: {progress * 100:.1f}% - {elapsed:.1f}s",
                end="",
                flush=True,
            )

    renderer.render(progress_callback)

    if not quiet:
        print()  # Newline after progress

    output_file = Path(output_path)
    renderer.save_image(output_file)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    # ti.gpu falls back to the CPU when no GPU backend is available
    ti.init(arch=ti.cpu if args.cpu else ti.gpu)

    from vpltrace.scene.loader import SceneLoadError
    from vpltrace.scene.model import SceneValidationError

    try:
        render_scene(
            scene_path=args.scene,
            width=args.width,
            height=args.height,
            seed=args.seed,
            output_path=args.output,
            quiet=args.quiet,
        )
    except SceneLoadError as e:
        print(f"Error loading scene (code {int(e.code)}): {e}", file=sys.stderr)
        return int(e.code)
    except SceneValidationError as e:
        print(f"Invalid scene: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
