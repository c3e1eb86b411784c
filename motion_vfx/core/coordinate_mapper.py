"""
Coordinate mapping from camera pixels to normalized, UI and world space.

Terminology:
- pixel: capture-frame coordinates, origin at the first row/column
- normalized: [0, 1] x [0, 1] after inversion/mirroring, used as a viewport
  point (0, 0 is bottom-left of the virtual camera view)
- ui: offsets in display pixels relative to the display center
- world: 3-D point on a plane at the target distance in front of the camera

Mirroring and inversion gate the same reflection: a mirrored display must
also mirror the motion coordinate fed back into world space. Setting both
flags of one axis cancels out.
"""

import math
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# Clamp range for the automatically derived spawn distance (world units)
MIN_TARGET_DISTANCE = 2.0
MAX_TARGET_DISTANCE = 10.0

# Orthographic cameras spawn this far beyond the near clip plane
ORTHOGRAPHIC_DISTANCE_MARGIN = 2.0


class Ray(NamedTuple):
    """View ray in world space. ``direction`` is unit length."""
    origin: np.ndarray
    direction: np.ndarray


def euler_to_rotation(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """
    Build a rotation matrix from Euler angles in degrees.

    Rotations are applied roll (Z), then pitch (X), then yaw (Y). The matrix
    columns are the camera right, up and forward axes in world space.
    """
    p, y, r = (math.radians(a) for a in (pitch, yaw, roll))
    cx, sx = math.cos(p), math.sin(p)
    cy, sy = math.cos(y), math.sin(y)
    cz, sz = math.cos(r), math.sin(r)

    rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]], dtype=np.float64)
    ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]], dtype=np.float64)
    rz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]], dtype=np.float64)
    return ry @ rx @ rz


@dataclass
class CameraModel:
    """Projection model of the virtual camera the effects are rendered from.

    The camera looks along its local +Z axis with +Y up.
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    fov: float = 60.0                 # vertical field of view, degrees
    aspect: float = 16.0 / 9.0
    orthographic: bool = False
    orthographic_size: float = 5.0    # half of the view height (world units)
    near_clip: float = 0.3

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)

    @property
    def forward(self) -> np.ndarray:
        return self.rotation[:, 2]

    def viewport_point_to_ray(self, vx: float, vy: float) -> Ray:
        """
        Ray through a viewport point.

        Args:
            vx: Horizontal viewport coordinate (0 = left, 1 = right)
            vy: Vertical viewport coordinate (0 = bottom, 1 = top)

        Returns:
            Ray starting on the near clip plane
        """
        sx = 2.0 * vx - 1.0
        sy = 2.0 * vy - 1.0

        if self.orthographic:
            h = self.orthographic_size
            local_origin = np.array([sx * h * self.aspect, sy * h, self.near_clip])
            origin = self.position + self.rotation @ local_origin
            return Ray(origin, self.forward / np.linalg.norm(self.forward))

        tan_half = math.tan(math.radians(self.fov) * 0.5)
        local_dir = np.array([sx * tan_half * self.aspect, sy * tan_half, 1.0])
        origin = self.position + self.rotation @ (local_dir * self.near_clip)
        direction = self.rotation @ local_dir
        return Ray(origin, direction / np.linalg.norm(direction))

    def to_dict(self) -> dict:
        return {
            'position': self.position.tolist(),
            'rotation': self.rotation.tolist(),
            'fov': self.fov,
            'aspect': self.aspect,
            'orthographic': self.orthographic,
            'orthographic_size': self.orthographic_size,
            'near_clip': self.near_clip,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CameraModel":
        """Create from dictionary. Rotation may be given as ``rotation_euler`` [pitch, yaw, roll]."""
        if 'rotation' in data:
            rotation = np.array(data['rotation'], dtype=np.float64)
        else:
            pitch, yaw, roll = data.get('rotation_euler', [0.0, 0.0, 0.0])
            rotation = euler_to_rotation(pitch, yaw, roll)
        return cls(
            position=np.array(data.get('position', [0.0, 0.0, 0.0]), dtype=np.float64),
            rotation=rotation,
            fov=float(data.get('fov', 60.0)),
            aspect=float(data.get('aspect', 16.0 / 9.0)),
            orthographic=bool(data.get('orthographic', False)),
            orthographic_size=float(data.get('orthographic_size', 5.0)),
            near_clip=float(data.get('near_clip', 0.3)),
        )


@dataclass
class MappingConfig:
    """Axis flags and spawn-distance settings for coordinate mapping."""
    invert_x: bool = False
    invert_y: bool = True          # capture rows grow downward, viewport y grows upward
    mirror: bool = False           # display shows the camera image mirrored
    flip_vertical: bool = False    # display shows the camera image upside down
    use_custom_distance: bool = False
    target_distance: float = 5.0
    position_offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        return {
            'invert_x': self.invert_x,
            'invert_y': self.invert_y,
            'mirror': self.mirror,
            'flip_vertical': self.flip_vertical,
            'use_custom_distance': self.use_custom_distance,
            'target_distance': self.target_distance,
            'position_offset': list(self.position_offset),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MappingConfig":
        offset = data.get('position_offset', [0.0, 0.0, 0.0])
        if len(offset) != 3:
            raise ValueError(f"position_offset must have 3 components, got {offset}")
        return cls(
            invert_x=bool(data.get('invert_x', False)),
            invert_y=bool(data.get('invert_y', True)),
            mirror=bool(data.get('mirror', False)),
            flip_vertical=bool(data.get('flip_vertical', False)),
            use_custom_distance=bool(data.get('use_custom_distance', False)),
            target_distance=float(data.get('target_distance', 5.0)),
            position_offset=tuple(float(v) for v in offset),
        )


class CoordinateMapper:
    """Stateless pixel -> normalized -> UI/world transforms.

    Reads the referenced MappingConfig on every call, so flag changes (for
    example toggling mirror from the preview window) apply on the next frame.
    """

    def __init__(self, config: Optional[MappingConfig] = None,
                 debug_conversion: bool = False):
        self.config = config or MappingConfig()
        self.debug_conversion = debug_conversion

    def normalize(self, px: float, py: float, width: int, height: int) -> Tuple[float, float]:
        """
        Normalize a pixel coordinate to [0, 1] and apply axis reflection.

        Returns the frame center for a zero-sized frame.
        """
        if width <= 0 or height <= 0:
            return (0.5, 0.5)

        cfg = self.config
        nx = px / width
        ny = py / height

        # Exclusive-or: mirror on top of invert_x cancels, matching the flipped preview image
        if cfg.invert_x != cfg.mirror:
            nx = 1.0 - nx
        if cfg.invert_y != cfg.flip_vertical:
            ny = 1.0 - ny

        return (nx, ny)

    @staticmethod
    def to_ui(normalized: Sequence[float], display_size: Sequence[float]) -> Tuple[float, float]:
        """Offset from the display center in display pixels."""
        return ((normalized[0] - 0.5) * display_size[0],
                (normalized[1] - 0.5) * display_size[1])

    def target_distance(self, camera: CameraModel, screen_height: float) -> float:
        """
        Distance from the camera to the effect spawn plane.

        A custom distance wins when configured. Otherwise orthographic
        cameras spawn just beyond the near plane, and perspective cameras
        use a distance derived from the field of view and screen height,
        clamped to a sensible range.
        """
        if self.config.use_custom_distance:
            return self.config.target_distance

        if camera.orthographic:
            return camera.near_clip + ORTHOGRAPHIC_DISTANCE_MARGIN

        tan_half = math.tan(math.radians(camera.fov) * 0.5)
        if tan_half <= 0:
            return MAX_TARGET_DISTANCE
        distance = (screen_height * 0.5) / (2.0 * tan_half)
        return max(MIN_TARGET_DISTANCE, min(MAX_TARGET_DISTANCE, distance))

    def to_world(self, normalized: Sequence[float], camera: CameraModel,
                 screen_height: float) -> np.ndarray:
        """World point on the spawn plane for a normalized coordinate."""
        ray = camera.viewport_point_to_ray(normalized[0], normalized[1])
        distance = self.target_distance(camera, screen_height)
        return ray.origin + ray.direction * distance + np.asarray(self.config.position_offset)

    def camera_to_ui(self, position: Sequence[float], width: int, height: int,
                     display_size: Sequence[float]) -> Tuple[float, float]:
        """Pixel coordinate to UI offset."""
        normalized = self.normalize(position[0], position[1], width, height)
        ui = self.to_ui(normalized, display_size)
        if self.debug_conversion:
            logger.debug(
                f"UI conversion: camera({position[0]:.1f}, {position[1]:.1f}) -> "
                f"normalized({normalized[0]:.3f}, {normalized[1]:.3f}) -> "
                f"ui({ui[0]:.1f}, {ui[1]:.1f})"
            )
        return ui

    def camera_to_world(self, position: Sequence[float], width: int, height: int,
                        camera: CameraModel, screen_height: float) -> np.ndarray:
        """Pixel coordinate to world point."""
        normalized = self.normalize(position[0], position[1], width, height)
        world = self.to_world(normalized, camera, screen_height)
        if self.debug_conversion:
            logger.debug(
                f"World conversion: camera({position[0]:.1f}, {position[1]:.1f}) -> "
                f"normalized({normalized[0]:.3f}, {normalized[1]:.3f}) -> "
                f"world({world[0]:.2f}, {world[1]:.2f}, {world[2]:.2f}), "
                f"distance {float(np.linalg.norm(world - camera.position)):.2f}"
            )
        return world
