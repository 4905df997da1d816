"""Planar rigid-body geometry for goal execution.

This module provides the small amount of geometry the controllers need:
- Rigid transforms (translation + rotation) with composition and inversion
- Planar pose extraction (x, y, yaw)
- Angle normalization to (-pi, pi]

Transforms follow the "maps source into target" convention: if ``T`` is the
transform from frame A to frame B, then ``T.transform_point(p_A)`` is the same
point expressed in B, and ``T`` is also the pose of A's origin inside B.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
import numpy.typing as npt


def normalize_angle(angle: float) -> float:
    """Wrap an angle to the half-open interval (-pi, pi].

    Args:
        angle: Angle in radians (any finite value).

    Returns:
        Equivalent angle in (-pi, pi].
    """
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    elif wrapped > math.pi:
        wrapped -= 2.0 * math.pi
    return wrapped


def rad2deg(rad: float) -> float:
    """Convert radians to degrees (for log messages)."""
    return rad * 180.0 / math.pi


def _yaw_matrix(yaw: float) -> npt.NDArray[np.float64]:
    c = math.cos(yaw)
    s = math.sin(yaw)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


@dataclass(frozen=True)
class Pose2D:
    """Planar projection of a rigid transform.

    Attributes:
        x: Position along the frame's x axis (meters).
        y: Position along the frame's y axis (meters).
        yaw: Heading (radians), always in (-pi, pi].
    """

    x: float
    y: float
    yaw: float

    def __post_init__(self) -> None:
        # Keep the yaw invariant even when constructed from raw values
        if math.isfinite(self.yaw):
            object.__setattr__(self, "yaw", normalize_angle(self.yaw))

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.yaw))


class RigidTransform:
    """Proper rigid transform in 3D, used here for planar motion.

    Attributes:
        rotation: 3x3 rotation matrix.
        translation: Translation vector (x, y, z) in meters.
    """

    def __init__(
        self,
        rotation: npt.ArrayLike = None,
        translation: Iterable[float] = (0.0, 0.0, 0.0),
    ) -> None:
        """Create a transform from a rotation matrix and translation.

        Args:
            rotation: 3x3 rotation matrix. Default: identity.
            translation: Translation (x, y, z). Default: origin.

        Raises:
            ValueError: If the shapes are wrong.
        """
        self.rotation = np.eye(3) if rotation is None else np.asarray(rotation, dtype=float)
        self.translation = np.asarray(list(translation), dtype=float)
        if self.rotation.shape != (3, 3):
            raise ValueError("rotation must be a 3x3 matrix")
        if self.translation.shape != (3,):
            raise ValueError("translation must be a 3D vector")

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    @classmethod
    def from_pose(cls, x: float, y: float, yaw: float, z: float = 0.0) -> "RigidTransform":
        """Build a planar transform from (x, y, yaw)."""
        return cls(_yaw_matrix(yaw), (x, y, z))

    @classmethod
    def from_pose2d(cls, pose: Pose2D) -> "RigidTransform":
        return cls.from_pose(pose.x, pose.y, pose.yaw)

    def __mul__(self, other: "RigidTransform") -> "RigidTransform":
        """Compose transforms: ``(A * B).transform_point(p) == A.transform_point(B.transform_point(p))``."""
        if not isinstance(other, RigidTransform):
            return NotImplemented
        rotation = self.rotation @ other.rotation
        translation = self.rotation @ other.translation + self.translation
        return RigidTransform(rotation, translation)

    def inverse(self) -> "RigidTransform":
        """Compute the inverse transform."""
        rot_t = self.rotation.T
        return RigidTransform(rot_t, -(rot_t @ self.translation))

    def transform_point(self, point: Iterable[float]) -> npt.NDArray[np.float64]:
        """Map a 3D point from the source frame into the target frame."""
        p = np.asarray(list(point), dtype=float)
        return self.rotation @ p + self.translation

    @property
    def x(self) -> float:
        return float(self.translation[0])

    @property
    def y(self) -> float:
        return float(self.translation[1])

    @property
    def yaw(self) -> float:
        """Yaw of the rotation (ZYX convention), in (-pi, pi]."""
        return normalize_angle(math.atan2(self.rotation[1, 0], self.rotation[0, 0]))

    def planar_offset(self) -> Tuple[float, float]:
        """Translation projected onto the ground plane (z dropped)."""
        return self.x, self.y

    def to_pose2d(self) -> Pose2D:
        return Pose2D(self.x, self.y, self.yaw)

    def __repr__(self) -> str:
        return f"RigidTransform(x={self.x:.3f}, y={self.y:.3f}, yaw={self.yaw:.3f})"


def get_pose(tf: RigidTransform) -> Pose2D:
    """Retrieve the 3 DOF used for planar motion from a transform.

    Args:
        tf: Any rigid transform.

    Returns:
        Pose2D with x, y and yaw of the transform.
    """
    return tf.to_pose2d()
