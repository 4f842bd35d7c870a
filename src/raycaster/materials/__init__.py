"""Materials module for surface properties.

Components:
    surface: Material registry (albedo, roughness, metallic, emission) and
        metallic reflection sampling

The registry declares Taichi fields, so it is not imported here. Import it
after ti.init():
    from raycaster.materials.surface import add_material, scatter_reflection
"""
