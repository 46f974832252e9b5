"""
4x4 homogeneous transforms for scene directives.

Matrices are numpy float64 arrays in row-major order acting on column
vectors (``p' = M @ p``), so translation lives in the last column.

Each constructor takes an ``inverse`` flag and builds the inverse
analytically; a Transform carries a matrix together with its inverse so
that composition never needs a numeric inversion. Only matrices supplied
verbatim by a scene file (``Transform``, ``ConcatTransform``) are
inverted numerically.
"""

from enum import IntFlag
from math import cos, sin, radians
from typing import Optional, Sequence, Tuple

import numpy as np

epsilon = 1e-12


class SingularMatrixError(ValueError):
    """Matrix has no inverse, or the transform is degenerate."""
    pass


def Identity() -> np.ndarray:
    return np.identity(4)


def Translation(delta: Sequence[float], inverse: bool = False) -> np.ndarray:
    dx, dy, dz = (float(v) for v in delta)
    if inverse:
        dx, dy, dz = -dx, -dy, -dz
    return np.array([[1.0, 0.0, 0.0, dx],
                     [0.0, 1.0, 0.0, dy],
                     [0.0, 0.0, 1.0, dz],
                     [0.0, 0.0, 0.0, 1.0]])


def Scale(x: float, y: float, z: float, inverse: bool = False) -> np.ndarray:
    if x == 0 or y == 0 or z == 0:
        raise SingularMatrixError(f"zero scale factor in ({x}, {y}, {z})")
    if inverse:
        x, y, z = 1.0 / x, 1.0 / y, 1.0 / z
    return np.diag([float(x), float(y), float(z), 1.0])


def Rotation(angle: float, axis: Sequence[float], inverse: bool = False) -> np.ndarray:
    """Rotation by ``angle`` degrees about an arbitrary axis."""
    u = np.asarray(axis, dtype=float)
    mag = np.linalg.norm(u)
    if mag < epsilon:
        raise SingularMatrixError("zero-length rotation axis")
    ux, uy, uz = u / mag

    rad = radians(angle)
    c = cos(rad)
    s = sin(rad)
    t = 1.0 - c

    R = np.array([[c + ux * ux * t, ux * uy * t - uz * s, ux * uz * t + uy * s, 0.0],
                  [uy * ux * t + uz * s, c + uy * uy * t, uy * uz * t - ux * s, 0.0],
                  [uz * ux * t - uy * s, uz * uy * t + ux * s, c + uz * uz * t, 0.0],
                  [0.0, 0.0, 0.0, 1.0]])
    # rotations are orthonormal
    if inverse:
        return R.T.copy()
    return R


def normalize(v: Sequence[float]) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    mag = np.linalg.norm(v)
    if mag < epsilon:
        raise SingularMatrixError("cannot normalize a zero-length vector")
    return v / mag


def CameraFrame(pos: Sequence[float], look: Sequence[float],
                up: Sequence[float]) -> np.ndarray:
    """Camera-to-world matrix for a camera at ``pos`` looking at ``look``."""
    pos = np.asarray(pos, dtype=float)
    direction = normalize(np.asarray(look, dtype=float) - pos)
    right = np.cross(normalize(up), direction)
    if np.linalg.norm(right) < epsilon:
        raise SingularMatrixError("up vector and viewing direction are parallel")
    right = normalize(right)
    new_up = np.cross(direction, right)

    m = np.identity(4)
    m[:3, 0] = right
    m[:3, 1] = new_up
    m[:3, 2] = direction
    m[:3, 3] = pos
    return m


def rigid_inverse(m: np.ndarray) -> np.ndarray:
    """Inverse of a rotation + translation matrix."""
    r = m[:3, :3].T
    out = np.identity(4)
    out[:3, :3] = r
    out[:3, 3] = -r @ m[:3, 3]
    return out


def LookAt(pos: Sequence[float], look: Sequence[float], up: Sequence[float],
           inverse: bool = False) -> np.ndarray:
    """World-to-camera matrix (camera-to-world when ``inverse``)."""
    camera_to_world = CameraFrame(pos, look, up)
    if inverse:
        return camera_to_world
    return rigid_inverse(camera_to_world)


def FrameFromDirection(direction: Sequence[float]) -> np.ndarray:
    """
    Rotation whose z axis is ``direction``.

    The other two axes complete a right-handed orthonormal frame, picked
    the same way for any direction so that results are reproducible.
    """
    w = normalize(direction)
    if abs(w[0]) > abs(w[1]):
        u = np.array([-w[2], 0.0, w[0]]) / np.hypot(w[0], w[2])
    else:
        u = np.array([0.0, w[2], -w[1]]) / np.hypot(w[1], w[2])
    v = np.cross(w, u)

    m = np.identity(4)
    m[:3, 0] = u
    m[:3, 1] = v
    m[:3, 2] = w
    return m


def from_column_major(values: Sequence[float]) -> np.ndarray:
    """Matrix from the 16 column-major numbers of a Transform directive."""
    if len(values) != 16:
        raise ValueError(f"expected 16 matrix elements, got {len(values)}")
    return np.array(values, dtype=float).reshape(4, 4).T.copy()


def to_column_major(m: np.ndarray) -> Tuple[float, ...]:
    return tuple(float(v) for v in np.asarray(m).T.reshape(16))


class Transform:
    """A 4x4 matrix paired with its inverse."""

    __slots__ = ("m", "im")

    def __init__(self, m: Optional[np.ndarray] = None, im: Optional[np.ndarray] = None):
        if m is None:
            m = Identity()
            im = Identity()
        elif im is None:
            raise ValueError("Transform needs the inverse matrix; use Transform.from_matrix")
        self.m = np.asarray(m, dtype=float)
        self.im = np.asarray(im, dtype=float)

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def translate(cls, dx: float, dy: float, dz: float) -> "Transform":
        d = (dx, dy, dz)
        return cls(Translation(d), Translation(d, inverse=True))

    @classmethod
    def scale(cls, x: float, y: float, z: float) -> "Transform":
        return cls(Scale(x, y, z), Scale(x, y, z, inverse=True))

    @classmethod
    def rotate(cls, angle: float, x: float, y: float, z: float) -> "Transform":
        axis = (x, y, z)
        return cls(Rotation(angle, axis), Rotation(angle, axis, inverse=True))

    @classmethod
    def look_at(cls, pos, look, up) -> "Transform":
        camera_to_world = CameraFrame(pos, look, up)
        return cls(rigid_inverse(camera_to_world), camera_to_world)

    @classmethod
    def from_matrix(cls, m: np.ndarray) -> "Transform":
        """
        Wrap an arbitrary matrix, inverting it numerically.

        Raises:
            SingularMatrixError: If ``m`` cannot be inverted
        """
        m = np.asarray(m, dtype=float)
        if m.shape != (4, 4):
            raise ValueError(f"expected a 4x4 matrix, got shape {m.shape}")
        if not np.all(np.isfinite(m)):
            raise SingularMatrixError("matrix has non-finite elements")
        try:
            im = np.linalg.inv(m)
        except np.linalg.LinAlgError:
            raise SingularMatrixError("matrix is singular")
        return cls(m, im)

    def compose(self, other: "Transform") -> "Transform":
        """``self`` followed by ``other`` in local space: ``self.m @ other.m``."""
        return Transform(self.m @ other.m, other.im @ self.im)

    def __matmul__(self, other: "Transform") -> "Transform":
        return self.compose(other)

    def inverse(self) -> "Transform":
        return Transform(self.im, self.m)

    def is_identity(self) -> bool:
        return bool(np.array_equal(self.m, Identity()))

    def apply_point(self, p: Sequence[float]) -> np.ndarray:
        h = self.m @ np.array([p[0], p[1], p[2], 1.0])
        if h[3] != 1.0 and h[3] != 0.0:
            return h[:3] / h[3]
        return h[:3]

    def apply_vector(self, v: Sequence[float]) -> np.ndarray:
        return self.m[:3, :3] @ np.asarray(v, dtype=float)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Transform):
            return NotImplemented
        return bool(np.array_equal(self.m, other.m) and np.array_equal(self.im, other.im))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Transform({self.m.tolist()})"


class ActiveTransform(IntFlag):
    """Which halves of a TransformSet transform directives modify."""
    START = 1
    END = 2
    ALL = 3


class TransformSet:
    """
    Start and end transforms of a motion-blur interval.

    Transform directives compose into (or replace) only the halves
    selected by ``active``.
    """

    def __init__(self, start: Optional[Transform] = None, end: Optional[Transform] = None,
                 active: ActiveTransform = ActiveTransform.ALL):
        start = start if start is not None else Transform()
        self.transforms = [start, end if end is not None else start]
        self.active = active

    @property
    def start(self) -> Transform:
        return self.transforms[0]

    @property
    def end(self) -> Transform:
        return self.transforms[1]

    def _selected(self):
        if self.active & ActiveTransform.START:
            yield 0
        if self.active & ActiveTransform.END:
            yield 1

    def compose(self, t: Transform) -> None:
        for i in self._selected():
            self.transforms[i] = self.transforms[i].compose(t)

    def replace(self, t: Transform) -> None:
        for i in self._selected():
            self.transforms[i] = t

    def copy(self) -> "TransformSet":
        return TransformSet(self.transforms[0], self.transforms[1], self.active)

    def inverse(self) -> "TransformSet":
        return TransformSet(self.transforms[0].inverse(), self.transforms[1].inverse(), self.active)

    @property
    def is_animated(self) -> bool:
        return not np.array_equal(self.transforms[0].m, self.transforms[1].m)

    def __getitem__(self, index: int) -> Transform:
        return self.transforms[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, TransformSet):
            return NotImplemented
        return self.transforms == other.transforms and self.active == other.active

    __hash__ = None

    def __repr__(self) -> str:
        return f"TransformSet(start={self.start!r}, end={self.end!r}, active={self.active!r})"
