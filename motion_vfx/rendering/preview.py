"""
Pygame preview window.

Shows the camera image, motion indicators and a small HUD, and turns key
presses into preview actions for the app loop.
"""

import os
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pygame

from motion_vfx.core.frame import PixelFrame
from motion_vfx.core.indicators import MotionIndicator
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# Preview actions produced by handle_events()
ACTION_QUIT = "quit"
ACTION_TOGGLE_MIRROR = "toggle_mirror"
ACTION_TOGGLE_FLIP = "toggle_flip"
ACTION_TOGGLE_INDICATORS = "toggle_indicators"
ACTION_TOGGLE_EFFECTS = "toggle_effects"
ACTION_NEXT_CAMERA = "next_camera"
ACTION_RESTART_CAPTURE = "restart_capture"

KEY_ACTIONS: Dict[int, str] = {
    pygame.K_ESCAPE: ACTION_QUIT,
    pygame.K_m: ACTION_TOGGLE_MIRROR,
    pygame.K_f: ACTION_TOGGLE_FLIP,
    pygame.K_i: ACTION_TOGGLE_INDICATORS,
    pygame.K_e: ACTION_TOGGLE_EFFECTS,
    pygame.K_c: ACTION_NEXT_CAMERA,
    pygame.K_r: ACTION_RESTART_CAPTURE,
}

HUD_COLOR = (255, 255, 255)
HUD_BACKGROUND = (0, 0, 0)
INDICATOR_ALPHA = 180


class PreviewRenderer:
    """Windowed (or fullscreen) pygame preview."""

    def __init__(self, width: int = 1280, height: int = 720,
                 fullscreen: bool = False, title: str = "Motion VFX"):
        self.requested_size = (width, height)
        self.fullscreen = fullscreen
        self.title = title

        self.screen: Optional[pygame.Surface] = None
        self.clock: Optional[pygame.time.Clock] = None
        self.width: int = 0
        self.height: int = 0
        self._font: Optional[pygame.font.Font] = None
        self._frame_surface: Optional[pygame.Surface] = None

    # ── Lifecycle ──────────────────────────────────────────────

    def init(self) -> None:
        """Open the preview window."""
        os.environ.setdefault("DISPLAY", ":0")
        pygame.init()

        sdl_version = pygame.get_sdl_version()
        logger.info(f"SDL version {sdl_version[0]}.{sdl_version[1]}.{sdl_version[2]} detected")

        if self.fullscreen:
            self.screen = pygame.display.set_mode((0, 0), pygame.FULLSCREEN)
        else:
            self.screen = pygame.display.set_mode(self.requested_size)
        pygame.display.set_caption(self.title)

        self.clock = pygame.time.Clock()
        self.width, self.height = self.screen.get_size()
        self._font = pygame.font.Font(None, 22)
        logger.info(f"Preview initialized: {self.width}x{self.height}")

    def get_size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def flip(self) -> None:
        pygame.display.flip()

    def tick(self, fps: int) -> float:
        """Tick clock and return time since last tick."""
        if self.clock:
            return self.clock.tick(fps) / 1000.0
        return 0.0

    def handle_events(self) -> List[str]:
        """Translate pending window events into preview actions."""
        actions = []
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                actions.append(ACTION_QUIT)
            elif event.type == pygame.KEYDOWN and event.key in KEY_ACTIONS:
                actions.append(KEY_ACTIONS[event.key])
        return actions

    def quit(self) -> None:
        pygame.quit()
        self.screen = None

    # ── Drawing ────────────────────────────────────────────────

    def draw_frame(self, frame: Optional[PixelFrame], mirror: bool = False,
                   flip_vertical: bool = False) -> None:
        """Blit the camera image scaled to the window."""
        if not self.screen:
            return
        if frame is not None:
            # surfarray expects (width, height, 3)
            surface = pygame.surfarray.make_surface(np.ascontiguousarray(frame.pixels[..., :3].swapaxes(0, 1)))
            if mirror or flip_vertical:
                surface = pygame.transform.flip(surface, mirror, flip_vertical)
            self._frame_surface = pygame.transform.scale(surface, (self.width, self.height))

        if self._frame_surface is not None:
            self.screen.blit(self._frame_surface, (0, 0))
        else:
            self.screen.fill(HUD_BACKGROUND)

    def ui_to_screen(self, ui_position: Sequence[float]) -> Tuple[int, int]:
        """UI offsets are centered on the window with y pointing up."""
        return (int(round(self.width * 0.5 + ui_position[0])),
                int(round(self.height * 0.5 - ui_position[1])))

    def draw_indicators(self, indicators: Sequence[MotionIndicator]) -> None:
        if not self.screen:
            return
        for indicator in indicators:
            radius = max(1, int(indicator.size * 0.5))
            center = self.ui_to_screen(indicator.ui_position)
            size = radius * 2 + 4
            temp_surface = pygame.Surface((size, size), pygame.SRCALPHA)
            pygame.draw.circle(temp_surface, (*indicator.color[:3], INDICATOR_ALPHA),
                               (radius + 2, radius + 2), radius)
            self.screen.blit(temp_surface, (center[0] - radius - 2, center[1] - radius - 2))

    def draw_hud(self, lines: Sequence[str]) -> None:
        """Draw left-aligned status lines in the top-left corner."""
        if not self.screen or not self._font:
            return
        y = 6
        for line in lines:
            text_surface = self._font.render(line, True, HUD_COLOR, HUD_BACKGROUND)
            self.screen.blit(text_surface, (6, y))
            y += text_surface.get_height() + 2
