"""Preview rendering."""

from motion_vfx.rendering.preview import PreviewRenderer

__all__ = ["PreviewRenderer"]
