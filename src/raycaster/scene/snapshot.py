"""Immutable scene descriptions handed from the editor to the renderer.

A SceneSnapshot is plain Python data: it holds no Taichi fields and can be
built, compared and serialized before Taichi is initialized. The renderer
uploads a snapshot into its fields at a frame boundary (see
raycaster.scene.manager), so an editor can keep building the next snapshot
while a frame is in flight.

All entities validate themselves at construction and raise ValueError for
input the intersection code could not handle meaningfully (zero radius,
zero-area triangles, dangling material ids, zero light directions).

Example:
    >>> red = MaterialInfo(albedo=(0.8, 0.1, 0.1))
    >>> ball = SphereInfo(center=(0.0, 0.0, -3.0), radius=1.0, material_id=0)
    >>> snapshot = SceneSnapshot(materials=(red,), spheres=(ball,))
    >>> snapshot.primitive_count
    1
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

Vec3 = tuple[float, float, float]

# Triangles whose area falls below this are rejected as degenerate
DEGENERATE_AREA_EPSILON = 1e-12


def _as_vec3(value: Iterable[float], name: str) -> Vec3:
    """Convert a 3-sequence to a tuple of finite floats."""
    items = tuple(float(c) for c in value)
    if len(items) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(items)}")
    if not all(math.isfinite(c) for c in items):
        raise ValueError(f"{name} must be finite, got {items}")
    return items  # type: ignore[return-value]


def _sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


@dataclass(frozen=True)
class MaterialInfo:
    """Surface material of a primitive.

    Attributes:
        albedo: Base color as (R, G, B), each component in [0, 1].
        roughness: Perturbation of metallic reflections in [0, 1].
            0 = perfect mirror.
        metallic: Fraction of the surface color produced by the reflected
            ray, in [0, 1]. 0 = purely diffuse.
        emissive: Emitted color as (R, G, B), non-negative.
        emissive_intensity: Scale applied to the emitted color.
    """

    albedo: Vec3 = (1.0, 1.0, 1.0)
    roughness: float = 1.0
    metallic: float = 0.0
    emissive: Vec3 = (0.0, 0.0, 0.0)
    emissive_intensity: float = 0.0

    def __post_init__(self) -> None:
        albedo = _as_vec3(self.albedo, "albedo")
        for i, component in enumerate(albedo):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Albedo component {i} = {component} is outside [0, 1]. "
                    "This would violate energy conservation."
                )
        emissive = _as_vec3(self.emissive, "emissive")
        if any(c < 0.0 for c in emissive):
            raise ValueError(f"Emissive color must be non-negative, got {emissive}")
        if not (0.0 <= self.roughness <= 1.0):
            raise ValueError(f"Roughness = {self.roughness} is outside [0, 1]")
        if not (0.0 <= self.metallic <= 1.0):
            raise ValueError(f"Metallic = {self.metallic} is outside [0, 1]")
        if not (self.emissive_intensity >= 0.0) or not math.isfinite(self.emissive_intensity):
            raise ValueError(
                f"Emissive intensity must be non-negative, got {self.emissive_intensity}"
            )
        object.__setattr__(self, "albedo", albedo)
        object.__setattr__(self, "emissive", emissive)
        object.__setattr__(self, "roughness", float(self.roughness))
        object.__setattr__(self, "metallic", float(self.metallic))
        object.__setattr__(self, "emissive_intensity", float(self.emissive_intensity))

    @property
    def emission(self) -> Vec3:
        """Emitted radiance (emissive color times intensity)."""
        return (
            self.emissive[0] * self.emissive_intensity,
            self.emissive[1] * self.emissive_intensity,
            self.emissive[2] * self.emissive_intensity,
        )


@dataclass(frozen=True)
class SphereInfo:
    """A sphere in the scene.

    Attributes:
        center: The center of the sphere as (x, y, z).
        radius: The radius of the sphere. Must be positive and finite.
        material_id: Index into SceneSnapshot.materials.
    """

    center: Vec3
    radius: float
    material_id: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", _as_vec3(self.center, "center"))
        if not math.isfinite(self.radius) or self.radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive and finite, got {self.radius}")
        object.__setattr__(self, "radius", float(self.radius))


@dataclass(frozen=True)
class TriangleInfo:
    """A triangle in the scene.

    Vertex order defines the geometric normal by the right-hand rule.

    Attributes:
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        material_id: Index into SceneSnapshot.materials.
        normals: Optional per-vertex normals (n0, n1, n2) for smooth shading.
            Interpolated with the hit's barycentric coordinates.
    """

    v0: Vec3
    v1: Vec3
    v2: Vec3
    material_id: int = 0
    normals: tuple[Vec3, Vec3, Vec3] | None = None

    def __post_init__(self) -> None:
        v0 = _as_vec3(self.v0, "v0")
        v1 = _as_vec3(self.v1, "v1")
        v2 = _as_vec3(self.v2, "v2")
        object.__setattr__(self, "v0", v0)
        object.__setattr__(self, "v1", v1)
        object.__setattr__(self, "v2", v2)

        area = self.area
        if area < DEGENERATE_AREA_EPSILON:
            raise ValueError(f"Degenerate triangle (area {area:.3g}): {v0}, {v1}, {v2}")

        if self.normals is not None:
            normals = tuple(self.normals)
            if len(normals) != 3:
                raise ValueError(f"Expected 3 vertex normals, got {len(normals)}")
            converted = []
            for i, n in enumerate(normals):
                vec = _as_vec3(n, f"normal {i}")
                length = _length(vec)
                if length == 0.0:
                    raise ValueError(f"Vertex normal {i} has zero length")
                converted.append((vec[0] / length, vec[1] / length, vec[2] / length))
            object.__setattr__(self, "normals", tuple(converted))

    @property
    def area(self) -> float:
        return 0.5 * _length(_cross(_sub(self.v1, self.v0), _sub(self.v2, self.v0)))

    @property
    def centroid(self) -> Vec3:
        return (
            (self.v0[0] + self.v1[0] + self.v2[0]) / 3.0,
            (self.v0[1] + self.v1[1] + self.v2[1]) / 3.0,
            (self.v0[2] + self.v1[2] + self.v2[2]) / 3.0,
        )


@dataclass(frozen=True)
class Sky:
    """Vertical sky gradient used for rays that escape the scene.

    Attributes:
        zenith: Color straight up.
        horizon: Color at the horizon (direction.y == 0).
        ground: Color below the horizon.
    """

    zenith: Vec3 = (0.6, 0.7, 0.9)
    horizon: Vec3 = (1.0, 1.0, 1.0)
    ground: Vec3 = (0.7, 0.7, 0.7)

    def __post_init__(self) -> None:
        for name in ("zenith", "horizon", "ground"):
            color = _as_vec3(getattr(self, name), name)
            if any(c < 0.0 for c in color):
                raise ValueError(f"Sky {name} color must be non-negative, got {color}")
            object.__setattr__(self, name, color)


DEFAULT_SKY = Sky()
BLACK_SKY = Sky(zenith=(0.0, 0.0, 0.0), horizon=(0.0, 0.0, 0.0), ground=(0.0, 0.0, 0.0))


@dataclass(frozen=True)
class DirectionalLight:
    """A light infinitely far away.

    Attributes:
        direction: Direction pointing TOWARD the light. Normalized on
            construction; must not be zero.
        intensity: Scalar brightness, non-negative.
        color: Light color as (R, G, B).
    """

    direction: Vec3
    intensity: float = 1.0
    color: Vec3 = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        direction = _as_vec3(self.direction, "direction")
        length = _length(direction)
        if length == 0.0:
            raise ValueError("Light direction must not be zero")
        object.__setattr__(
            self, "direction", (direction[0] / length, direction[1] / length, direction[2] / length)
        )
        color = _as_vec3(self.color, "color")
        if any(c < 0.0 for c in color):
            raise ValueError(f"Light color must be non-negative, got {color}")
        object.__setattr__(self, "color", color)
        if not math.isfinite(self.intensity) or self.intensity < 0.0:
            raise ValueError(f"Light intensity must be non-negative, got {self.intensity}")
        object.__setattr__(self, "intensity", float(self.intensity))


@dataclass(frozen=True)
class SceneSnapshot:
    """Everything the renderer needs to know about a scene, frozen in time.

    Materials are referenced by position: a primitive with material_id=2
    uses materials[2]. Sequences are stored as tuples so a snapshot can be
    shared between threads without copying.

    Attributes:
        materials: Ordered materials.
        spheres: Spheres, tested first by the intersector.
        triangles: Triangles, tested after spheres.
        sky: Background gradient.
        lights: Directional lights.
    """

    materials: tuple[MaterialInfo, ...] = field(default_factory=tuple)
    spheres: tuple[SphereInfo, ...] = field(default_factory=tuple)
    triangles: tuple[TriangleInfo, ...] = field(default_factory=tuple)
    sky: Sky = DEFAULT_SKY
    lights: tuple[DirectionalLight, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("materials", "spheres", "triangles", "lights"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

        material_count = len(self.materials)
        for kind, primitives in (("Sphere", self.spheres), ("Triangle", self.triangles)):
            for index, primitive in enumerate(primitives):
                if not (0 <= primitive.material_id < material_count):
                    raise ValueError(
                        f"{kind} {index} references material {primitive.material_id}, "
                        f"but the scene has {material_count} materials"
                    )

    @property
    def primitive_count(self) -> int:
        return len(self.spheres) + len(self.triangles)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the snapshot as plain lists and dicts (JSON compatible)."""
        return {
            "materials": [
                {
                    "albedo": list(m.albedo),
                    "roughness": m.roughness,
                    "metallic": m.metallic,
                    "emissive": list(m.emissive),
                    "emissive_intensity": m.emissive_intensity,
                }
                for m in self.materials
            ],
            "spheres": [
                {"center": list(s.center), "radius": s.radius, "material_id": s.material_id}
                for s in self.spheres
            ],
            "triangles": [
                {
                    "vertices": [list(t.v0), list(t.v1), list(t.v2)],
                    "material_id": t.material_id,
                    "normals": None if t.normals is None else [list(n) for n in t.normals],
                }
                for t in self.triangles
            ],
            "sky": {
                "zenith": list(self.sky.zenith),
                "horizon": list(self.sky.horizon),
                "ground": list(self.sky.ground),
            },
            "lights": [
                {"direction": list(l.direction), "intensity": l.intensity, "color": list(l.color)}
                for l in self.lights
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SceneSnapshot:
        """Build a snapshot from the output of to_dict().

        Missing sections fall back to their defaults.

        Raises:
            ValueError: If any entity fails validation.
            KeyError: If a required entity field is missing.
        """
        materials = tuple(
            MaterialInfo(
                albedo=m["albedo"],
                roughness=m.get("roughness", 1.0),
                metallic=m.get("metallic", 0.0),
                emissive=m.get("emissive", (0.0, 0.0, 0.0)),
                emissive_intensity=m.get("emissive_intensity", 0.0),
            )
            for m in data.get("materials", [])
        )
        spheres = tuple(
            SphereInfo(center=s["center"], radius=s["radius"], material_id=s.get("material_id", 0))
            for s in data.get("spheres", [])
        )
        triangles = []
        for t in data.get("triangles", []):
            v0, v1, v2 = t["vertices"]
            normals = t.get("normals")
            triangles.append(
                TriangleInfo(
                    v0=v0,
                    v1=v1,
                    v2=v2,
                    material_id=t.get("material_id", 0),
                    normals=None if normals is None else tuple(tuple(n) for n in normals),
                )
            )
        sky_data = data.get("sky")
        sky = DEFAULT_SKY if sky_data is None else Sky(**sky_data)
        lights = tuple(
            DirectionalLight(
                direction=l["direction"],
                intensity=l.get("intensity", 1.0),
                color=l.get("color", (1.0, 1.0, 1.0)),
            )
            for l in data.get("lights", [])
        )
        return cls(
            materials=materials,
            spheres=spheres,
            triangles=tuple(triangles),
            sky=sky,
            lights=lights,
        )
