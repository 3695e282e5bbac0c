"""Bundle adjustment problems in the BAL text format.

A problem holds cameras, 3D points and the 2D observations linking them.
Camera parameters are an angle-axis rotation (or a ``[w, x, y, z]``
quaternion), a translation, a focal length and two radial distortion
coefficients. All parameters live in one flat array; ``cameras`` and
``points`` are writable views into it.
"""

from __future__ import annotations

import numpy as np

from .noise import NoiseSource
from .rotation import (
    angle_axis_rotate_point,
    angle_axis_to_quaternion,
    quaternion_to_angle_axis,
)

_PLY_HEADER = (
    "ply\n"
    "format ascii 1.0\n"
    "element vertex {count}\n"
    "property float x\n"
    "property float y\n"
    "property float z\n"
    "property uchar red\n"
    "property uchar green\n"
    "property uchar blue\n"
    "end_header\n"
)


class BALFormatError(ValueError):
    """Raised when BAL data cannot be read."""


def median(values) -> float:
    """Element at position ``n // 2`` of the sorted values (upper median)."""
    array = np.asarray(values, dtype=float).ravel()
    if array.size == 0:
        raise ValueError("median of an empty sequence")
    k = array.size // 2
    return float(np.partition(array, k)[k])


def _matrix(values, columns: int, name: str) -> np.ndarray:
    array = np.array(values, dtype=float)
    if array.size == 0:
        array = array.reshape(0, columns)
    if array.ndim != 2 or array.shape[1] != columns:
        raise ValueError(f"{name} must have shape (n, {columns}), got {array.shape}")
    return array


class BALProblem:
    """Cameras, points and observations of a bundle adjustment problem."""

    def __init__(self, cameras, points, camera_index, point_index, observations, use_quaternions=False):
        self.use_quaternions = bool(use_quaternions)
        cams = _matrix(cameras, self.camera_block_size, "cameras")
        pts = _matrix(points, self.point_block_size, "points")
        obs = _matrix(observations, 2, "observations")
        cam_idx = np.array(camera_index, dtype=int).reshape(-1)
        pt_idx = np.array(point_index, dtype=int).reshape(-1)
        if not len(cam_idx) == len(pt_idx) == len(obs):
            raise ValueError("camera_index, point_index and observations differ in length")
        if cam_idx.size and (cam_idx.min() < 0 or cam_idx.max() >= len(cams)):
            raise ValueError("camera index out of range")
        if pt_idx.size and (pt_idx.min() < 0 or pt_idx.max() >= len(pts)):
            raise ValueError("point index out of range")
        self._num_cameras = len(cams)
        self._num_points = len(pts)
        self.camera_index = cam_idx
        self.point_index = pt_idx
        self.observations = obs
        self.parameters = np.concatenate([cams.ravel(), pts.ravel()])

    @classmethod
    def from_file(cls, filename, use_quaternions=False) -> BALProblem:
        """Read a problem from a BAL file."""
        with open(filename, encoding="utf-8") as handle:
            return cls.parse(handle.read(), use_quaternions)

    @classmethod
    def parse(cls, text: str, use_quaternions=False) -> BALProblem:
        """Read a problem from BAL text (angle-axis cameras of 9 values)."""
        tokens = iter(text.split())

        def take(convert, what):
            try:
                token = next(tokens)
            except StopIteration:
                raise BALFormatError(f"unexpected end of data while reading {what}") from None
            try:
                return convert(token)
            except ValueError:
                raise BALFormatError(f"invalid {what}: {token!r}") from None

        num_cameras = take(int, "camera count")
        num_points = take(int, "point count")
        num_observations = take(int, "observation count")
        if min(num_cameras, num_points, num_observations) < 0:
            raise BALFormatError("counts must not be negative")

        camera_index, point_index, observations = [], [], []
        for _ in range(num_observations):
            camera_index.append(take(int, "camera index"))
            point_index.append(take(int, "point index"))
            observations.append((take(float, "observation"), take(float, "observation")))

        count = 9 * num_cameras + 3 * num_points
        parameters = np.array([take(float, "parameter") for _ in range(count)], dtype=float)
        cameras = parameters[: 9 * num_cameras].reshape(num_cameras, 9)
        points = parameters[9 * num_cameras :].reshape(num_points, 3)
        if use_quaternions:
            cameras = np.array(
                [np.concatenate([angle_axis_to_quaternion(c[:3]), c[3:]]) for c in cameras]
            ).reshape(num_cameras, 10)
        try:
            return cls(cameras, points, camera_index, point_index, observations, use_quaternions)
        except ValueError as exc:
            raise BALFormatError(str(exc)) from exc

    @property
    def camera_block_size(self) -> int:
        return 10 if self.use_quaternions else 9

    @property
    def point_block_size(self) -> int:
        return 3

    @property
    def num_cameras(self) -> int:
        return self._num_cameras

    @property
    def num_points(self) -> int:
        return self._num_points

    @property
    def num_observations(self) -> int:
        return len(self.observations)

    @property
    def num_parameters(self) -> int:
        return self.parameters.size

    @property
    def cameras(self) -> np.ndarray:
        """Writable ``(num_cameras, camera_block_size)`` view of the parameters."""
        end = self._num_cameras * self.camera_block_size
        return self.parameters[:end].reshape(self._num_cameras, self.camera_block_size)

    @property
    def points(self) -> np.ndarray:
        """Writable ``(num_points, 3)`` view of the parameters."""
        start = self._num_cameras * self.camera_block_size
        return self.parameters[start:].reshape(self._num_points, self.point_block_size)

    def camera_for_observation(self, i: int) -> np.ndarray:
        """Writable view of the camera seen in observation ``i``."""
        return self.cameras[self.camera_index[i]]

    def point_for_observation(self, i: int) -> np.ndarray:
        """Writable view of the point seen in observation ``i``."""
        return self.points[self.point_index[i]]

    def _translation_slice(self) -> slice:
        return slice(self.camera_block_size - 6, self.camera_block_size - 3)

    def camera_to_angle_axis_and_center(self, camera):
        """Return the camera's angle-axis rotation and its centre ``c = -R't``."""
        cam = np.asarray(camera, dtype=float)
        if cam.shape != (self.camera_block_size,):
            raise ValueError(f"camera must have shape ({self.camera_block_size},), got {cam.shape}")
        if self.use_quaternions:
            angle_axis = quaternion_to_angle_axis(cam[:4])
        else:
            angle_axis = cam[:3].copy()
        center = -angle_axis_rotate_point(-angle_axis, cam[self._translation_slice()])
        return angle_axis, center

    def angle_axis_and_center_to_camera(self, angle_axis, center) -> np.ndarray:
        """Return the pose part of a camera (rotation then ``t = -R c``), without intrinsics."""
        aa = np.asarray(angle_axis, dtype=float)
        rotation = angle_axis_to_quaternion(aa) if self.use_quaternions else np.array(aa)
        translation = -angle_axis_rotate_point(aa, center)
        return np.concatenate([rotation, translation])

    def write_to_file(self, filename) -> None:
        """Write the problem as BAL text, with cameras in angle-axis form."""
        count = self._num_cameras
        with open(filename, "w", encoding="utf-8") as out:
            out.write(f"{count} {count} {self._num_points} {self.num_observations}\n")
            for cam, pt, (x, y) in zip(self.camera_index, self.point_index, self.observations):
                out.write(f"{cam} {pt} {x:g} {y:g}\n")
            for camera in self.cameras:
                if self.use_quaternions:
                    values = np.concatenate([quaternion_to_angle_axis(camera[:4]), camera[4:]])
                else:
                    values = camera
                out.writelines(f"{v:.16g}\n" for v in values)
            out.writelines(f"{v:.16g}\n" for v in self.points.ravel())

    def write_to_ply_file(self, filename) -> None:
        """Write camera centres (green) and points (white) as an ASCII PLY file."""
        with open(filename, "w", encoding="utf-8") as out:
            out.write(_PLY_HEADER.format(count=self._num_cameras + self._num_points))
            for camera in self.cameras:
                _, center = self.camera_to_angle_axis_and_center(camera)
                out.write(f"{center[0]:g} {center[1]:g} {center[2]:g}0 255 0\n")
            for point in self.points:
                out.write("".join(f"{v:g} " for v in point) + "255 255 255\n")

    def normalize(self) -> None:
        """Centre the scene on its median and scale its median absolute deviation to 100."""
        points = self.points
        centre = np.array([median(points[:, k]) for k in range(3)])
        deviation = median(np.abs(points - centre).sum(axis=1))
        if deviation == 0.0:
            raise ValueError("cannot normalize: median absolute deviation is zero")
        scale = 100.0 / deviation
        points[:] = scale * (points - centre)
        for camera in self.cameras:
            angle_axis, center = self.camera_to_angle_axis_and_center(camera)
            camera[: self.camera_block_size - 3] = self.angle_axis_and_center_to_camera(
                angle_axis, scale * (center - centre)
            )

    def perturb(self, rotation_sigma, translation_sigma, point_sigma, noise=None) -> None:
        """Add Gaussian noise to points, camera rotations and camera translations."""
        for name, sigma in (
            ("point_sigma", point_sigma),
            ("rotation_sigma", rotation_sigma),
            ("translation_sigma", translation_sigma),
        ):
            if sigma < 0.0:
                raise ValueError(f"{name} must be non-negative, got {sigma}")
        noise = noise if noise is not None else NoiseSource()

        if point_sigma > 0.0:
            self.points[:] = noise.perturb(self.points, point_sigma)

        translation = self._translation_slice()
        for camera in self.cameras:
            angle_axis, center = self.camera_to_angle_axis_and_center(camera)
            if rotation_sigma > 0.0:
                angle_axis = noise.perturb(angle_axis, rotation_sigma)
            camera[: self.camera_block_size - 3] = self.angle_axis_and_center_to_camera(angle_axis, center)
            if translation_sigma > 0.0:
                camera[translation] = noise.perturb(camera[translation], translation_sigma)