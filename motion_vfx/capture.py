"""
Capture sources feeding PixelFrames into the pipeline.

OpenCVCaptureSource drains the camera on a background grab thread so the
frame loop never blocks on the device; ``read()`` hands out the newest frame
exactly once. SyntheticCaptureSource renders a moving square and is used for
demos and headless runs.
"""

import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import cv2
import numpy as np

from motion_vfx.core.frame import PixelFrame
from motion_vfx.core.quality import resolution_preset
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# Indices probed by list_cameras()
MAX_PROBED_CAMERAS = 8

# Seconds release() waits for the grab thread before leaving it to finish on its own
GRAB_JOIN_TIMEOUT = 1.0

SOURCE_CAMERA = "camera"
SOURCE_SYNTHETIC = "synthetic"


@dataclass
class CaptureConfig:
    """Capture device settings."""
    source: str = SOURCE_CAMERA
    camera_index: int = 0
    width: int = 640
    height: int = 360
    fps: int = 60
    use_16x9: bool = True

    def __post_init__(self):
        if self.source not in (SOURCE_CAMERA, SOURCE_SYNTHETIC):
            raise ValueError(f"Unknown capture source '{self.source}'")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid capture resolution {self.width}x{self.height}")

    def to_dict(self) -> dict:
        return {
            'source': self.source,
            'camera_index': self.camera_index,
            'width': self.width,
            'height': self.height,
            'fps': self.fps,
            'use_16x9': self.use_16x9,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CaptureConfig":
        """Create from dictionary. A named ``preset`` overrides width and height."""
        use_16x9 = bool(data.get('use_16x9', True))
        width, height = int(data.get('width', 640)), int(data.get('height', 360))
        if data.get('preset'):
            width, height = resolution_preset(str(data['preset']), use_16x9)
        return cls(
            source=str(data.get('source', SOURCE_CAMERA)),
            camera_index=int(data.get('camera_index', 0)),
            width=width,
            height=height,
            fps=int(data.get('fps', 60)),
            use_16x9=use_16x9,
        )


class CaptureSource(Protocol):
    """Non-blocking frame source."""

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the frames currently delivered."""
        ...

    def read(self) -> Optional[PixelFrame]:
        """Newest frame not returned before, or None."""
        ...

    def restart(self, width: int, height: int) -> bool:
        ...

    def release(self) -> None:
        ...


def list_cameras(max_index: int = MAX_PROBED_CAMERAS) -> List[int]:
    """Probe camera indices that can be opened."""
    found = []
    for index in range(max_index):
        cap = cv2.VideoCapture(index)
        try:
            if cap.isOpened():
                found.append(index)
        finally:
            cap.release()
    logger.info(f"Available cameras: {found if found else 'none'}")
    return found


class OpenCVCaptureSource:
    """
    Camera capture through cv2.VideoCapture.

    Args:
        camera_index: Device index
        width: Requested frame width
        height: Requested frame height
        fps: Requested device frame rate
    """

    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 360, fps: int = 60):
        self.camera_index = camera_index
        self.requested_size = (width, height)
        self.fps = fps

        self._cap: Optional[cv2.VideoCapture] = None
        self._size: Tuple[int, int] = (0, 0)

        self._lock = threading.Lock()
        self._latest: Optional[PixelFrame] = None
        self._sequence = 0
        self._read_sequence = 0

        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._in_error_state = False

    @property
    def size(self) -> Tuple[int, int]:
        return self._size

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> bool:
        """
        Open the device and start the grab thread.

        Returns:
            True if the camera could be opened
        """
        width, height = self.requested_size
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            logger.error(f"Failed to open camera {self.camera_index}")
            cap.release()
            return False

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        cap.set(cv2.CAP_PROP_FPS, self.fps)

        self._cap = cap
        self._size = (int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))
        logger.info(
            f"Camera {self.camera_index} opened: requested {width}x{height}@{self.fps}, "
            f"got {self._size[0]}x{self._size[1]}@{cap.get(cv2.CAP_PROP_FPS):.0f}"
        )
        self._start_grabbing()
        return True

    def _start_grabbing(self):
        # Every opened device gets a fresh thread that owns it and releases it on exit
        stop = threading.Event()
        self._stop_event = stop
        self._thread = threading.Thread(target=self._grab_loop, args=(self._cap, stop),
                                        name="capture-grab", daemon=True)
        self._thread.start()

    def _stop_grabbing(self):
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=GRAB_JOIN_TIMEOUT)
            if self._thread.is_alive():
                logger.warning(
                    f"Camera {self.camera_index} read still pending; "
                    f"the device is released when it returns"
                )
        self._thread = None
        self._stop_event = None

    def _grab_loop(self, cap: cv2.VideoCapture, stop: threading.Event):
        """Background thread: keep only the newest camera frame."""
        try:
            while not stop.is_set():
                ok, bgr = cap.read()
                if stop.is_set():
                    break
                if not ok or bgr is None:
                    # First failure logs as ERROR, subsequent as DEBUG
                    if not self._in_error_state:
                        logger.error(f"Camera {self.camera_index} returned no frame")
                        self._in_error_state = True
                    else:
                        logger.debug(f"Camera {self.camera_index} returned no frame (repeated)")
                    stop.wait(0.05)
                    continue

                if self._in_error_state:
                    logger.info(f"Camera {self.camera_index} recovered")
                    self._in_error_state = False

                frame = PixelFrame(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), time.monotonic())
                with self._lock:
                    # A stopped thread must not publish into a reopened device's stream
                    if stop.is_set():
                        break
                    self._latest = frame
                    self._sequence += 1
                    self._size = frame.size
        finally:
            cap.release()

    def read(self) -> Optional[PixelFrame]:
        with self._lock:
            if self._latest is None or self._sequence == self._read_sequence:
                return None
            self._read_sequence = self._sequence
            return self._latest

    def restart(self, width: int, height: int) -> bool:
        """Reopen the device at a new resolution."""
        logger.info(f"Restarting camera {self.camera_index} at {width}x{height}")
        self.release()
        self.requested_size = (width, height)
        return self.open()

    def switch_camera(self, camera_index: int) -> bool:
        """Reopen on another device index at the current requested resolution."""
        self.release()
        self.camera_index = camera_index
        return self.open()

    def release(self) -> None:
        """Stop grabbing; the grab thread releases the device it owns."""
        self._stop_grabbing()
        self._cap = None
        with self._lock:
            self._latest = None
            self._read_sequence = self._sequence


class SyntheticCaptureSource:
    """
    Deterministic test pattern: a bright square sweeping over a gray background.

    Args:
        width: Frame width
        height: Frame height
        square: Edge length of the moving square
        speed: Horizontal movement per frame in pixels
        background: Gray level of the background
    """

    def __init__(self, width: int = 640, height: int = 360, square: int = 48,
                 speed: int = 12, background: int = 96):
        self._size = (width, height)
        self.square = square
        self.speed = speed
        self.background = background
        self.frame_index = 0

    @property
    def size(self) -> Tuple[int, int]:
        return self._size

    def render(self, index: int) -> np.ndarray:
        """Pixels of frame ``index``."""
        width, height = self._size
        pixels = np.full((height, width, 3), self.background, dtype=np.uint8)
        side = min(self.square, width, height)
        span = max(1, width - side)
        # Bounce back and forth horizontally, drift slowly vertically
        offset = (index * self.speed) % (2 * span)
        x = offset if offset < span else 2 * span - offset
        y = (height - side) // 2 + int((height - side) * 0.25 * np.sin(index * 0.05))
        y = max(0, min(height - side, y))
        pixels[y:y + side, x:x + side] = 255
        return pixels

    def read(self) -> Optional[PixelFrame]:
        frame = PixelFrame(self.render(self.frame_index), time.monotonic())
        self.frame_index += 1
        return frame

    def restart(self, width: int, height: int) -> bool:
        logger.info(f"Synthetic source resized to {width}x{height}")
        self._size = (width, height)
        return True

    def release(self) -> None:
        pass


def open_capture(config: CaptureConfig):
    """
    Build the capture source selected by ``config``.

    Raises:
        RuntimeError: If the camera cannot be opened
    """
    if config.source == SOURCE_SYNTHETIC:
        return SyntheticCaptureSource(config.width, config.height)

    source = OpenCVCaptureSource(config.camera_index, config.width, config.height, config.fps)
    if not source.open():
        raise RuntimeError(f"Camera {config.camera_index} could not be opened")
    return source
