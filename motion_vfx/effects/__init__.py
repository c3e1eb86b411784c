"""Effect backends receiving trigger commands."""

from motion_vfx.effects.base import (
    KNOWN_PARAMETERS,
    EffectBackend,
    EffectParameterSchema,
    LoggingEffectBackend,
)
from motion_vfx.effects.socket_backend import SocketEffectBackend

__all__ = [
    "KNOWN_PARAMETERS",
    "EffectBackend",
    "EffectParameterSchema",
    "LoggingEffectBackend",
    "SocketEffectBackend",
]
