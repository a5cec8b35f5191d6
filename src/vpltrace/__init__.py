"""Virtual-point-light path tracer built on Taichi.

This package renders triangle-mesh scenes with a progressive Monte Carlo
path tracer whose direct lighting comes from virtual point lights sampled
on emissive geometry:
- Stratified camera sub-samples and cosine-weighted diffuse bounces
- Mirror, glossy and refractive continuation events
- Scanline-pair progressive rendering with saturation tone mapping
- A text scene-description loader

Subpackages:
    core: Vector utilities, sampling, virtual point lights, the integrator
        and the progressive driver
    geometry: Slab and ray-triangle intersection tests
    scene: Scene data model, loader, intersection queries and Cornell box
    camera: Pinhole camera basis and primary rays
    preview: Tone mapping, PNG export and preview windows
"""

__version__ = "0.1.0"
