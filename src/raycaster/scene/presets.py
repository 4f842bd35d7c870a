"""Ready-made scenes.

create_default_scene() reproduces the demo scene the renderer starts with:
three colored balls on a large ground sphere, a bright emissive sphere far
up to the right, and one directional light. create_single_sphere_scene() is
the minimal lit scene used to check shading by hand.

Example:
    >>> snapshot, camera = create_default_scene()
    >>> len(snapshot.spheres)
    5
"""


from raycaster.camera.view import Camera

from .snapshot import (
    BLACK_SKY,
    DEFAULT_SKY,
    DirectionalLight,
    MaterialInfo,
    SceneSnapshot,
    Sky,
    SphereInfo,
    TriangleInfo,
    Vec3,
)


def create_default_scene(with_box: bool = False) -> tuple[SceneSnapshot, Camera]:
    """Create the demo scene and its camera.

    Args:
        with_box: Also add a unit cube of triangles between the balls and
            the camera, which exercises the triangle path.

    Returns:
        Tuple of (snapshot, camera).
    """
    materials = (
        MaterialInfo(albedo=(1.0, 0.0, 1.0), roughness=0.0),
        MaterialInfo(albedo=(0.0, 0.0, 0.0), roughness=1.0),
        MaterialInfo(albedo=(1.0, 0.0, 0.0), roughness=1.0),
        MaterialInfo(albedo=(0.0, 1.0, 0.0), roughness=1.0),
        MaterialInfo(albedo=(0.0, 0.0, 1.0), roughness=1.0),
        MaterialInfo(emissive=(1.0, 1.0, 1.0), emissive_intensity=2.0),
    )
    spheres = (
        # Ground
        SphereInfo(center=(0.0, -201.0, 0.0), radius=200.0, material_id=1),
        SphereInfo(center=(-1.25, -0.5, 0.0), radius=0.5, material_id=2),
        SphereInfo(center=(0.0, -0.5, 0.0), radius=0.5, material_id=3),
        SphereInfo(center=(1.25, -0.5, 0.0), radius=0.5, material_id=4),
        # Emitter
        SphereInfo(center=(20.0, 20.0, 20.0), radius=10.0, material_id=5),
    )
    triangles: tuple[TriangleInfo, ...] = ()
    if with_box:
        triangles = box_triangles(center=(0.0, -0.75, 1.5), size=0.5, material_id=0)

    snapshot = SceneSnapshot(
        materials=materials,
        spheres=spheres,
        triangles=triangles,
        sky=DEFAULT_SKY,
        # Up and to the left, so the emitter does not shadow the balls
        lights=(DirectionalLight(direction=(-1.0, 1.0, 1.0), intensity=1.0),),
    )
    camera = Camera(position=(0.0, 0.0, 6.0), forward=(0.0, 0.0, -1.0), vfov=45.0)
    return snapshot, camera


def create_single_sphere_scene(
    albedo: Vec3 = (0.8, 0.3, 0.3),
    light_intensity: float = 1.0,
    sky: Sky | None = None,
) -> tuple[SceneSnapshot, Camera]:
    """A unit sphere at (0, 0, -5) lit head-on, seen from the origin.

    The light direction (0, 0, 1) points back at the camera, so the ray
    through the image center hits the sphere at (0, 0, -4) with normal
    (0, 0, 1) and a diffuse factor of exactly 1.

    Args:
        albedo: Sphere color.
        light_intensity: Intensity of the single directional light.
        sky: Background gradient. Defaults to black.

    Returns:
        Tuple of (snapshot, camera).
    """
    snapshot = SceneSnapshot(
        materials=(MaterialInfo(albedo=albedo),),
        spheres=(SphereInfo(center=(0.0, 0.0, -5.0), radius=1.0, material_id=0),),
        sky=BLACK_SKY if sky is None else sky,
        lights=(DirectionalLight(direction=(0.0, 0.0, 1.0), intensity=light_intensity),),
    )
    camera = Camera(position=(0.0, 0.0, 0.0), forward=(0.0, 0.0, -1.0))
    return snapshot, camera


def box_triangles(center: Vec3, size: float, material_id: int = 0) -> tuple[TriangleInfo, ...]:
    """Twelve outward-facing triangles forming an axis-aligned cube.

    Args:
        center: Center of the cube.
        size: Edge length.
        material_id: Material shared by all faces.

    Raises:
        ValueError: If size is not positive.
    """
    if size <= 0.0:
        raise ValueError(f"Box size must be positive, got {size}")
    h = size / 2.0
    cx, cy, cz = center

    def corner(sx: int, sy: int, sz: int) -> Vec3:
        return (cx + sx * h, cy + sy * h, cz + sz * h)

    # Each face as a counter-clockwise quad seen from outside
    faces = (
        (corner(-1, -1, 1), corner(1, -1, 1), corner(1, 1, 1), corner(-1, 1, 1)),  # +Z
        (corner(1, -1, -1), corner(-1, -1, -1), corner(-1, 1, -1), corner(1, 1, -1)),  # -Z
        (corner(1, -1, 1), corner(1, -1, -1), corner(1, 1, -1), corner(1, 1, 1)),  # +X
        (corner(-1, -1, -1), corner(-1, -1, 1), corner(-1, 1, 1), corner(-1, 1, -1)),  # -X
        (corner(-1, 1, 1), corner(1, 1, 1), corner(1, 1, -1), corner(-1, 1, -1)),  # +Y
        (corner(-1, -1, -1), corner(1, -1, -1), corner(1, -1, 1), corner(-1, -1, 1)),  # -Y
    )
    triangles = []
    for a, b, c, d in faces:
        triangles.append(TriangleInfo(v0=a, v1=b, v2=c, material_id=material_id))
        triangles.append(TriangleInfo(v0=a, v1=c, v2=d, material_id=material_id))
    return tuple(triangles)
