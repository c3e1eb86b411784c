"""
Effect backend interface and parameter schema.

A backend advertises the parameter names it understands once; the schema
resolved from that list decides which fields go into every trigger payload.
"""

from typing import Any, Dict, FrozenSet, Iterable, Protocol, Set

from motion_vfx.core.trigger_scheduler import TriggerCommand
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# Parameter names understood by particle systems, grouped by value type
VECTOR3_PARAMETERS = ("TargetPosition", "SpawnPosition", "Position", "WorldPosition", "EmitPosition")
FLOAT_PARAMETERS = ("Intensity", "Scale")
INT_PARAMETERS = ("BurstCount", "MaxParticles")

KNOWN_PARAMETERS: FrozenSet[str] = frozenset(VECTOR3_PARAMETERS + FLOAT_PARAMETERS + INT_PARAMETERS)


class EffectBackend(Protocol):
    """Anything that can receive trigger commands."""

    def capabilities(self) -> Set[str]:
        """Parameter names the backend accepts."""
        ...

    def trigger(self, command: TriggerCommand) -> None:
        ...

    def stop(self) -> None:
        """Stop all running effects."""
        ...


class EffectParameterSchema:
    """
    The subset of known parameters a backend advertised.

    Unknown advertised names are ignored (logged once at resolve time).
    """

    def __init__(self, names: Iterable[str]):
        names = set(names)
        unknown = names - KNOWN_PARAMETERS
        if unknown:
            logger.debug(f"Ignoring unknown effect parameters: {sorted(unknown)}")
        self.parameters: FrozenSet[str] = frozenset(names & KNOWN_PARAMETERS)
        self.vector3 = tuple(n for n in VECTOR3_PARAMETERS if n in self.parameters)
        if not self.vector3:
            logger.warning("Effect backend advertises no position parameter; effects will spawn at its default")

    @classmethod
    def resolve(cls, backend: EffectBackend) -> "EffectParameterSchema":
        schema = cls(backend.capabilities())
        logger.info(f"Effect parameters: {', '.join(sorted(schema.parameters)) or 'none'}")
        return schema

    def __contains__(self, name: str) -> bool:
        return name in self.parameters

    def payload(self, command: TriggerCommand) -> Dict[str, Any]:
        """Build the parameter dict for one command."""
        position = [float(v) for v in command.world_position]
        values: Dict[str, Any] = {name: list(position) for name in self.vector3}
        if "Intensity" in self.parameters:
            values["Intensity"] = float(command.intensity)
        if "Scale" in self.parameters:
            values["Scale"] = float(command.params.scale)
        if "BurstCount" in self.parameters:
            values["BurstCount"] = int(command.params.burst_count)
        if "MaxParticles" in self.parameters:
            values["MaxParticles"] = int(command.params.max_particles)
        return values


class LoggingEffectBackend:
    """Backend that only logs triggers. Used when no particle system is attached."""

    def __init__(self):
        self.schema = EffectParameterSchema.resolve(self)
        self.trigger_count = 0

    def capabilities(self) -> Set[str]:
        return set(KNOWN_PARAMETERS)

    def trigger(self, command: TriggerCommand) -> None:
        self.trigger_count += 1
        p = command.world_position
        logger.info(
            f"Effect at ({p[0]:.2f}, {p[1]:.2f}, {p[2]:.2f}) intensity {command.intensity:.3f} "
            f"scale {command.params.scale:.2f} burst {command.params.burst_count}"
        )
        logger.debug(f"Effect payload: {self.schema.payload(command)}")

    def stop(self) -> None:
        logger.info("All effects stopped")
