"""
Unit tests for quaternions and matrix decomposition.
"""

from math import degrees

import numpy as np
import pytest
from pbrtscene import Quaternion, decompose
from pbrtscene.quaternion import compose
from pbrtscene.xform import Rotation, Scale, Translation


class TestQuaternion:
    """Conversions between quaternions, matrices and Euler angles."""

    def test_identity(self):
        assert Quaternion.identity().as_tuple() == (1.0, 0.0, 0.0, 0.0)
        assert np.allclose(Quaternion().to_matrix(), np.identity(4))

    def test_axis_angle_matches_rotation(self):
        """Quaternion and matrix rotations agree."""
        for axis, angle in (([0, 0, 1], 90), ([1, 1, 0], 33), ([0, 1, 0], -120)):
            q = Quaternion.from_axis_angle(axis, angle)
            assert np.allclose(q.to_matrix(), Rotation(angle, axis), atol=1e-9)

    def test_from_matrix_round_trip(self):
        """Every trace branch recovers the rotation."""
        for axis, angle in (([0, 0, 1], 10), ([1, 0, 0], 179), ([0, 1, 0], 179),
                            ([0, 0, 1], 179), ([1, 2, 3], 250)):
            expected = Quaternion.from_axis_angle(axis, angle)
            q = Quaternion.from_matrix(Rotation(angle, axis))
            assert q.isclose(expected)
            assert q.w >= 0.0

    def test_canonical(self):
        """The canonical form has w >= 0 and the same rotation."""
        q = Quaternion(-0.5, 0.5, 0.5, 0.5).canonical()
        assert q.w == 0.5
        assert q.isclose(Quaternion(0.5, -0.5, -0.5, -0.5))

    def test_euler_round_trip(self):
        q = Quaternion.from_euler(10, 20, 30)
        x, y, z = q.to_euler()
        assert (x, y, z) == pytest.approx((10, 20, 30))

    def test_euler_order(self):
        """Euler angles compose as Rz @ Ry @ Rx."""
        q = Quaternion.from_euler(10, 20, 30)
        m = Rotation(30, [0, 0, 1]) @ Rotation(20, [0, 1, 0]) @ Rotation(10, [1, 0, 0])
        assert np.allclose(q.to_matrix(), m, atol=1e-9)

    def test_multiplication_composes(self):
        a = Quaternion.from_axis_angle([0, 0, 1], 90)
        b = Quaternion.from_axis_angle([1, 0, 0], 90)
        assert np.allclose((a * b).to_matrix(), a.to_matrix() @ b.to_matrix(), atol=1e-9)

    def test_conjugate_inverts(self):
        q = Quaternion.from_axis_angle([1, 2, 3], 40)
        assert (q * q.conjugate()).isclose(Quaternion.identity())

    def test_zero_axis(self):
        with pytest.raises(ValueError):
            Quaternion.from_axis_angle([0, 0, 0], 10)


class TestDecompose:
    """Splitting matrices into translation, rotation and scale."""

    def test_identity(self):
        d = decompose(np.identity(4))
        assert d.translation == (0.0, 0.0, 0.0)
        assert d.scale == (1.0, 1.0, 1.0)
        assert d.rotation.isclose(Quaternion())

    def test_trs_with_reflection(self):
        """T(1,2,3) R(1 rad about y) S(-2,2,3) comes back exactly."""
        angle = degrees(1.0)
        m = Translation([1, 2, 3]) @ Rotation(angle, [0, 1, 0]) @ Scale(-2, 2, 3)
        d = decompose(m)
        assert d.translation == pytest.approx((1, 2, 3))
        assert d.scale == pytest.approx((-2, 2, 3))
        assert d.rotation.isclose(Quaternion.from_axis_angle([0, 1, 0], angle))
        assert d.euler == pytest.approx((0, angle, 0), abs=1e-9)
        assert np.allclose(d.to_matrix(), m, atol=1e-9)

    def test_reflection_on_other_axis(self):
        """A reflection in Y is reported as an X reflection plus a half turn."""
        m = Scale(2, -2, 3)
        d = decompose(m)
        assert d.scale == pytest.approx((-2, 2, 3))
        assert d.rotation.isclose(Quaternion.from_axis_angle([0, 0, 1], 180))
        assert np.allclose(d.to_matrix(), m, atol=1e-9)

    def test_zero_scale(self):
        """A collapsed axis gives the identity rotation."""
        m = np.diag([1.0, 0.0, 1.0, 1.0])
        d = decompose(m)
        assert d.scale[1] == 0.0
        assert d.rotation.isclose(Quaternion())

    def test_compose(self):
        q = Quaternion.from_axis_angle([0, 0, 1], 90)
        m = compose((1, 0, 0), q, (2, 2, 2))
        assert np.allclose(m @ [1, 0, 0, 1], [1, 2, 0, 1])
