"""Rigid-body transforms in SE(3) with their Lie algebra.

Tangent vectors are ordered ``[rho, phi]``: the translational part first,
then the rotational part. Quaternions are ``[w, x, y, z]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

_SMALL_EPS = 1e-10


def _vec(values, size: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {array.shape}")
    return array


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix such that ``hat(v) @ w == v x w``."""
    x, y, z = _vec(v, 3, "v")
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def vee(m) -> np.ndarray:
    """Inverse of :func:`hat`."""
    matrix = np.asarray(m, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError(f"matrix must have shape (3, 3), got {matrix.shape}")
    return np.array([matrix[2, 1], matrix[0, 2], matrix[1, 0]])


def so3_exp(omega) -> np.ndarray:
    """Rotation matrix for the rotation vector ``omega``."""
    w = _vec(omega, 3, "omega")
    theta = float(np.linalg.norm(w))
    k = hat(w)
    k2 = k @ k
    if theta < _SMALL_EPS:
        return np.eye(3) + k + 0.5 * k2
    return np.eye(3) + (math.sin(theta) / theta) * k + ((1.0 - math.cos(theta)) / theta**2) * k2


def quaternion_to_matrix(w, x, y, z) -> np.ndarray:
    """Rotation matrix of the (normalised) quaternion ``w + xi + yj + zk``."""
    q = np.array([w, x, y, z], dtype=float)
    norm = float(np.linalg.norm(q))
    if norm == 0.0:
        raise ValueError("quaternion must not be zero")
    w, x, y, z = q / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quaternion(rotation) -> np.ndarray:
    """Unit quaternion ``[w, x, y, z]`` with ``w >= 0`` for a rotation matrix."""
    r = np.asarray(rotation, dtype=float)
    if r.shape != (3, 3):
        raise ValueError(f"rotation must have shape (3, 3), got {r.shape}")
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = 2.0 * math.sqrt(trace + 1.0)
        q = [0.25 * s, (r[2, 1] - r[1, 2]) / s, (r[0, 2] - r[2, 0]) / s, (r[1, 0] - r[0, 1]) / s]
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = 2.0 * math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2])
        q = [(r[2, 1] - r[1, 2]) / s, 0.25 * s, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s]
    elif r[1, 1] > r[2, 2]:
        s = 2.0 * math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2])
        q = [(r[0, 2] - r[2, 0]) / s, (r[0, 1] + r[1, 0]) / s, 0.25 * s, (r[1, 2] + r[2, 1]) / s]
    else:
        s = 2.0 * math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1])
        q = [(r[1, 0] - r[0, 1]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, 0.25 * s]
    quat = np.array(q)
    quat /= np.linalg.norm(quat)
    return -quat if quat[0] < 0.0 else quat


def so3_log(rotation) -> np.ndarray:
    """Rotation vector of a rotation matrix, with angle in [0, pi]."""
    q = matrix_to_quaternion(rotation)
    w, v = q[0], q[1:]
    n = float(np.linalg.norm(v))
    if n < _SMALL_EPS:
        return (2.0 / w) * v
    if abs(w) < _SMALL_EPS:
        return (math.pi / n) * v
    return (2.0 * math.atan(n / w) / n) * v


def _left_jacobian(phi: np.ndarray) -> np.ndarray:
    theta = float(np.linalg.norm(phi))
    k = hat(phi)
    k2 = k @ k
    if theta < _SMALL_EPS:
        return np.eye(3) + 0.5 * k + k2 / 6.0
    return (
        np.eye(3)
        + ((1.0 - math.cos(theta)) / theta**2) * k
        + ((theta - math.sin(theta)) / theta**3) * k2
    )


def _left_jacobian_inverse(phi: np.ndarray) -> np.ndarray:
    theta = float(np.linalg.norm(phi))
    k = hat(phi)
    k2 = k @ k
    if theta < _SMALL_EPS:
        return np.eye(3) - 0.5 * k + k2 / 12.0
    coeff = (1.0 - theta * math.sin(theta) / (2.0 * (1.0 - math.cos(theta)))) / theta**2
    return np.eye(3) - 0.5 * k + coeff * k2


@dataclass(frozen=True, eq=False)
class SE3:
    """A rigid transform ``x -> rotation @ x + translation``."""

    rotation: np.ndarray
    translation: np.ndarray

    def __post_init__(self) -> None:
        rotation = np.array(self.rotation, dtype=float)
        if rotation.shape != (3, 3):
            raise ValueError(f"rotation must have shape (3, 3), got {rotation.shape}")
        translation = np.array(_vec(self.translation, 3, "translation"))
        object.__setattr__(self, "rotation", rotation)
        object.__setattr__(self, "translation", translation)

    @classmethod
    def identity(cls) -> SE3:
        return cls(np.eye(3), np.zeros(3))

    @classmethod
    def exp(cls, xi) -> SE3:
        """Transform for the tangent vector ``xi = [rho, phi]``."""
        v = _vec(xi, 6, "xi")
        rho, phi = v[:3], v[3:]
        return cls(so3_exp(phi), _left_jacobian(phi) @ rho)

    @classmethod
    def from_quaternion(cls, translation, quaternion) -> SE3:
        """Build from a translation and a quaternion ``[w, x, y, z]`` (normalised)."""
        w, x, y, z = _vec(quaternion, 4, "quaternion")
        return cls(quaternion_to_matrix(w, x, y, z), translation)

    def log(self) -> np.ndarray:
        """Tangent vector ``[rho, phi]`` of this transform."""
        phi = so3_log(self.rotation)
        rho = _left_jacobian_inverse(phi) @ self.translation
        return np.concatenate([rho, phi])

    def inverse(self) -> SE3:
        rt = self.rotation.T
        return SE3(rt, -rt @ self.translation)

    def adjoint(self) -> np.ndarray:
        """6x6 adjoint matrix acting on ``[rho, phi]`` tangent vectors."""
        adj = np.zeros((6, 6))
        adj[:3, :3] = self.rotation
        adj[:3, 3:] = hat(self.translation) @ self.rotation
        adj[3:, 3:] = self.rotation
        return adj

    def quaternion(self) -> np.ndarray:
        """Unit quaternion ``[w, x, y, z]`` of the rotation part."""
        return matrix_to_quaternion(self.rotation)

    def __matmul__(self, other):
        if isinstance(other, SE3):
            return SE3(self.rotation @ other.rotation, self.rotation @ other.translation + self.translation)
        if isinstance(other, (np.ndarray, list, tuple)):
            return self.rotation @ _vec(other, 3, "point") + self.translation
        return NotImplemented


def jr_inv(error: SE3) -> np.ndarray:
    """Approximation of the inverse right Jacobian for a pose-graph error."""
    phi_hat = hat(so3_log(error.rotation))
    j = np.zeros((6, 6))
    j[:3, :3] = phi_hat
    j[:3, 3:] = hat(error.translation)
    j[3:, 3:] = phi_hat
    return 0.5 * j + np.eye(6)