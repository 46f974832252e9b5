"""
Quaternions and affine matrix decomposition.

Node transforms are shown to users as translation / rotation / scale.
``decompose`` splits a 4x4 affine matrix into those parts:

    M = T(translation) @ R(rotation) @ S(scale)

A reflection (negative determinant) is attributed to the X scale factor,
so ``S(-2, 2, 3)`` round-trips exactly while ``S(2, -2, 3)`` comes back as
a rotation by 180 degrees about Z combined with ``S(-2, 2, 3)``. Any shear
is folded into the nearest rotation.

Euler angles follow the roll/pitch/yaw convention ``R = Rz(z) @ Ry(y) @ Rx(x)``.
"""

from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Sequence, Tuple

import numpy as np

epsilon = 1e-12


@dataclass(frozen=True)
class Quaternion:
    """Unit quaternion ``w + xi + yj + zk``."""
    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def identity(cls) -> "Quaternion":
        return cls()

    @classmethod
    def from_axis_angle(cls, axis: Sequence[float], angle: float) -> "Quaternion":
        """Rotation by ``angle`` degrees about ``axis``."""
        a = np.asarray(axis, dtype=float)
        mag = np.linalg.norm(a)
        if mag < epsilon:
            raise ValueError("zero-length rotation axis")
        a = a / mag
        half = radians(angle) / 2.0
        s = sin(half)
        return cls(cos(half), a[0] * s, a[1] * s, a[2] * s).canonical()

    @classmethod
    def from_matrix(cls, m) -> "Quaternion":
        """Quaternion of the rotation in the upper 3x3 block of ``m``."""
        r = np.asarray(m, dtype=float)[:3, :3]
        trace = r[0, 0] + r[1, 1] + r[2, 2]
        if trace > 0.0:
            s = sqrt(trace + 1.0) * 2.0
            q = cls(0.25 * s,
                    (r[2, 1] - r[1, 2]) / s,
                    (r[0, 2] - r[2, 0]) / s,
                    (r[1, 0] - r[0, 1]) / s)
        elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
            s = sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2.0
            q = cls((r[2, 1] - r[1, 2]) / s,
                    0.25 * s,
                    (r[0, 1] + r[1, 0]) / s,
                    (r[0, 2] + r[2, 0]) / s)
        elif r[1, 1] > r[2, 2]:
            s = sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2.0
            q = cls((r[0, 2] - r[2, 0]) / s,
                    (r[0, 1] + r[1, 0]) / s,
                    0.25 * s,
                    (r[1, 2] + r[2, 1]) / s)
        else:
            s = sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2.0
            q = cls((r[1, 0] - r[0, 1]) / s,
                    (r[0, 2] + r[2, 0]) / s,
                    (r[1, 2] + r[2, 1]) / s,
                    0.25 * s)
        return q.normalized().canonical()

    @classmethod
    def from_euler(cls, x: float, y: float, z: float) -> "Quaternion":
        """Quaternion from roll/pitch/yaw angles in degrees."""
        cx, sx = cos(radians(x) / 2.0), sin(radians(x) / 2.0)
        cy, sy = cos(radians(y) / 2.0), sin(radians(y) / 2.0)
        cz, sz = cos(radians(z) / 2.0), sin(radians(z) / 2.0)
        return cls(cx * cy * cz + sx * sy * sz,
                   sx * cy * cz - cx * sy * sz,
                   cx * sy * cz + sx * cy * sz,
                   cx * cy * sz - sx * sy * cz).canonical()

    def to_euler(self) -> Tuple[float, float, float]:
        """Roll/pitch/yaw angles in degrees."""
        w, x, y, z = self.w, self.x, self.y, self.z
        roll = atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
        pitch = asin(max(-1.0, min(1.0, 2.0 * (w * y - x * z))))
        yaw = atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
        return degrees(roll), degrees(pitch), degrees(yaw)

    def to_matrix(self) -> np.ndarray:
        """4x4 rotation matrix."""
        w, x, y, z = self.w, self.x, self.y, self.z
        m = np.identity(4)
        m[:3, :3] = [[1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
                     [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
                     [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)]]
        return m

    def norm(self) -> float:
        return sqrt(self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> "Quaternion":
        n = self.norm()
        if n < epsilon:
            return Quaternion()
        return Quaternion(self.w / n, self.x / n, self.y / n, self.z / n)

    def canonical(self) -> "Quaternion":
        """Same rotation with ``w >= 0``."""
        if self.w < 0.0:
            return Quaternion(-self.w, -self.x, -self.y, -self.z)
        return self

    def conjugate(self) -> "Quaternion":
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def __mul__(self, o: "Quaternion") -> "Quaternion":
        return Quaternion(
            self.w * o.w - self.x * o.x - self.y * o.y - self.z * o.z,
            self.w * o.x + self.x * o.w + self.y * o.z - self.z * o.y,
            self.w * o.y - self.x * o.z + self.y * o.w + self.z * o.x,
            self.w * o.z + self.x * o.y - self.y * o.x + self.z * o.w,
        )

    def dot(self, o: "Quaternion") -> float:
        return self.w * o.w + self.x * o.x + self.y * o.y + self.z * o.z

    def isclose(self, o: "Quaternion", tol: float = 1e-9) -> bool:
        """True when both represent the same rotation (``q`` and ``-q`` agree)."""
        return abs(abs(self.dot(o)) - 1.0) <= tol

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.w, self.x, self.y, self.z)


@dataclass(frozen=True)
class Decomposition:
    """Translation, rotation and scale of an affine matrix."""
    translation: Tuple[float, float, float]
    rotation: Quaternion
    scale: Tuple[float, float, float]

    @property
    def euler(self) -> Tuple[float, float, float]:
        return self.rotation.to_euler()

    def to_matrix(self) -> np.ndarray:
        return compose(self.translation, self.rotation, self.scale)


def compose(translation: Sequence[float], rotation: Quaternion,
            scale: Sequence[float]) -> np.ndarray:
    """``T @ R @ S`` as a 4x4 matrix."""
    m = rotation.to_matrix()
    m[:3, :3] = m[:3, :3] * np.asarray(scale, dtype=float)
    m[:3, 3] = translation
    return m


def decompose(m) -> Decomposition:
    """
    Split an affine 4x4 matrix into translation, rotation and scale.

    The result is canonical, not necessarily the factors the matrix was
    built from: a reflection always lands on the X scale and the rotation
    absorbs the rest. ``S(1, -2, 1)`` decomposes to scale ``(-1, 2, 1)``
    with a half turn about Z, which composes back to the same matrix.
    Compare decompositions through ``to_matrix()`` rather than by scale.

    A zero scale factor yields the identity rotation instead of dividing
    by zero.
    """
    m = np.asarray(m, dtype=float)
    translation = m[:3, 3].copy()
    a = m[:3, :3]

    scale = np.linalg.norm(a, axis=0)
    if np.linalg.det(a) < 0.0:
        scale[0] = -scale[0]

    if np.any(np.abs(scale) < epsilon):
        rotation = Quaternion()
    else:
        r = a / scale
        # nearest orthonormal matrix
        u, _, vt = np.linalg.svd(r)
        rotation = Quaternion.from_matrix(u @ vt)

    return Decomposition(
        tuple(float(v) for v in translation),
        rotation,
        tuple(float(v) for v in scale),
    )
