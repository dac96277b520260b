"""Tensor flow field sampled by the streamline generator.

A tensor is stored as ``(r, theta)``; its major eigenvector points along
``theta`` and the minor one is perpendicular.  Basis fields are summed in
component space ``(r cos 2theta, r sin 2theta)`` weighted by distance
decay.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np
from opensimplex import OpenSimplex

from city_coast.water.types import NoiseParams, Point, WorldBounds

Vector = tuple[float, float]

ZERO_VECTOR: Vector = (0.0, 0.0)


@dataclass(frozen=True)
class Tensor:
    """Symmetric traceless 2x2 tensor in polar form."""

    r: float
    theta: float

    @classmethod
    def zero(cls) -> "Tensor":
        return cls(0.0, 0.0)

    @classmethod
    def from_components(cls, a: float, b: float) -> "Tensor":
        """Build from ``a = r cos 2theta``, ``b = r sin 2theta``."""
        r = math.hypot(a, b)
        if r == 0:
            return cls.zero()
        return cls(r, math.atan2(b, a) / 2)

    @property
    def is_degenerate(self) -> bool:
        return self.r == 0

    def components(self) -> tuple[float, float]:
        return (self.r * math.cos(2 * self.theta), self.r * math.sin(2 * self.theta))

    def rotated(self, angle: float) -> "Tensor":
        if self.is_degenerate:
            return self
        return Tensor(self.r, self.theta + angle)

    def major(self) -> Vector:
        if self.is_degenerate:
            return ZERO_VECTOR
        return (math.cos(self.theta), math.sin(self.theta))

    def minor(self) -> Vector:
        if self.is_degenerate:
            return ZERO_VECTOR
        return (-math.sin(self.theta), math.cos(self.theta))

    def eigenvector(self, major: bool) -> Vector:
        return self.major() if major else self.minor()


class FlowField(Protocol):
    """Anything that can be sampled for a tensor at a world point."""

    def sample(self, point: Point) -> Tensor: ...


def _decay_weight(point: Point, center: Point, size: float, decay: float) -> float:
    d = math.dist(point, center) / size
    if decay == 0 and d >= 1:
        return 0.0
    return max(0.0, 1.0 - d) ** decay


@dataclass(frozen=True)
class GridBasis:
    """Uniform direction ``theta`` fading out around ``center``."""

    center: Point
    size: float
    decay: float
    theta: float

    def tensor(self, point: Point) -> Tensor:
        return Tensor(1.0, self.theta)

    def weight(self, point: Point) -> float:
        return _decay_weight(point, self.center, self.size, self.decay)


@dataclass(frozen=True)
class RadialBasis:
    """Concentric circles around ``center``."""

    center: Point
    size: float
    decay: float

    def tensor(self, point: Point) -> Tensor:
        x = point[0] - self.center[0]
        y = point[1] - self.center[1]
        return Tensor.from_components(y * y - x * x, -2 * x * y)

    def weight(self, point: Point) -> float:
        return _decay_weight(point, self.center, self.size, self.decay)


Basis = GridBasis | RadialBasis


@dataclass
class TensorField:
    """Weighted sum of basis fields."""

    bases: list[Basis] = field(default_factory=list)

    def add_grid(self, center: Point, size: float, decay: float, theta: float) -> None:
        self.bases.append(GridBasis(center, size, decay, theta))

    def add_radial(self, center: Point, size: float, decay: float) -> None:
        self.bases.append(RadialBasis(center, size, decay))

    def sample(self, point: Point) -> Tensor:
        a = 0.0
        b = 0.0
        for basis in self.bases:
            w = basis.weight(point)
            if w == 0:
                continue
            ta, tb = basis.tensor(point).components()
            a += w * ta
            b += w * tb
        return Tensor.from_components(a, b)

    @classmethod
    def recommended(cls, world: WorldBounds, rng: np.random.Generator) -> "TensorField":
        """A random field suited to a single coastline and river.

        A world-wide background grid keeps every point non-degenerate;
        local grids and one radial basis inside the central 70% of the world
        bend it.
        """
        diagonal = math.hypot(world.width, world.height)
        inner_w = world.width * 0.7
        inner_h = world.height * 0.7
        inner_x = world.origin_x + (world.width - inner_w) / 2
        inner_y = world.origin_y + (world.height - inner_h) / 2

        def inner_point() -> Point:
            return (
                inner_x + float(rng.random()) * inner_w,
                inner_y + float(rng.random()) * inner_h,
            )

        tf = cls()
        tf.add_grid(world.center, diagonal * 2, 0.0, float(rng.random()) * math.pi / 2)
        for _ in range(3):
            tf.add_grid(
                inner_point(),
                diagonal * float(rng.uniform(0.3, 0.6)),
                float(rng.uniform(1.0, 3.0)),
                float(rng.random()) * math.pi / 2,
            )
        tf.add_radial(inner_point(), diagonal * float(rng.uniform(0.1, 0.25)), 2.0)
        return tf


class RotationalNoise:
    """Rotates sampled tensors by a smooth noise-driven angle."""

    def __init__(self, params: NoiseParams, seed: int = 0) -> None:
        self.params = params
        self._simplex = OpenSimplex(seed=seed)

    def angle_at(self, point: Point) -> float:
        """Rotation in radians, within ``[-angle, angle]``."""
        x, y = point
        size = self.params.size
        return self._simplex.noise2(x / size, y / size) * self.params.angle_radians


class FieldView:
    """Read-only view of a flow field for one generation call.

    Sampling returns the zero tensor wherever ``is_land`` rejects the point,
    and rotates every other tensor by ``noise`` when given.  The wrapped
    field is never modified.
    """

    def __init__(
        self,
        flow_field: FlowField,
        is_land: Callable[[Point], bool] | None = None,
        noise: RotationalNoise | None = None,
    ) -> None:
        self.field = flow_field
        self.is_land = is_land
        self.noise = noise if noise is not None and noise.params.enabled else None

    def sample(self, point: Point) -> Tensor:
        if self.is_land is not None and not self.is_land(point):
            return Tensor.zero()
        tensor = self.field.sample(point)
        if self.noise is not None:
            tensor = tensor.rotated(self.noise.angle_at(point))
        return tensor


class RK4Integrator:
    """Fourth-order Runge-Kutta step along an eigenvector field.

    Eigenvectors have no inherent sign, so intermediate samples are flipped
    to agree with the first one before they are combined.
    """

    def __init__(self, flow_field: FlowField, dstep: float) -> None:
        self.field = flow_field
        self.dstep = dstep

    def _vector(self, point: Point, major: bool) -> Vector:
        return self.field.sample(point).eigenvector(major)

    def integrate(self, point: Point, major: bool) -> Vector:
        x, y = point
        h = self.dstep
        k1 = self._vector(point, major)
        k23 = _align(self._vector((x + h / 2, y + h / 2), major), k1)
        k4 = _align(self._vector((x + h, y + h), major), k1)
        return (
            (k1[0] + 4 * k23[0] + k4[0]) * h / 6,
            (k1[1] + 4 * k23[1] + k4[1]) * h / 6,
        )


def _align(v: Vector, reference: Vector) -> Vector:
    if v[0] * reference[0] + v[1] * reference[1] < 0:
        return (-v[0], -v[1])
    return v
