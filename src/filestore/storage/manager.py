# SPDX-License-Identifier: MIT
"""Volume registry.

Maps logical volume names (``uploads``, ``logs`` ...) to driver
definitions and materialises each one into a driver instance on first use.
Instances are cached for the lifetime of the manager.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from ..config import ConfigInput, FSVolumeConfig, S3VolumeConfig, default_volume_name
from ..errors import VolumeError
from .local import FSVolumeDriver
from .protocol import VolumeDriver

logger = logging.getLogger("filestore")

DriverFactory = Callable[..., VolumeDriver]
"""Called as ``factory(config, defaults=...)``; returns a :class:`VolumeDriver`."""


@dataclass(frozen=True)
class VolumeDefinition:
    """Registry entry for a named volume."""

    protocol: str
    config: Any = field(default=None)


def _s3_driver(config: ConfigInput = None, *, defaults: ConfigInput = None) -> VolumeDriver:
    """Build an :class:`S3VolumeDriver`, importing boto3 only when needed."""
    try:
        from .s3 import S3VolumeDriver
    except ImportError as exc:
        raise RuntimeError(
            "S3 volume driver requires extra dependencies. Install with: pip install 'filestore[s3]'"
        ) from exc
    return S3VolumeDriver(config, defaults=defaults)


def builtin_drivers() -> dict[str, DriverFactory]:
    return {"fs": FSVolumeDriver, "s3": _s3_driver}


def builtin_definitions() -> dict[str, VolumeDefinition]:
    return {"fs": VolumeDefinition(protocol="fs"), "s3": VolumeDefinition(protocol="s3")}


class VolumeManager:
    """Registry of named volumes and the driver factories that back them.

    Args:
        volumes: Extra volume definitions, keyed by name.  Mapping values may
            be :class:`VolumeDefinition` or ``{"protocol": ..., "config": ...}``.
        drivers: Extra driver factories, keyed by protocol.
        default_volume: Name used by :meth:`get_volume` when none is given.
        driver_defaults: Injected configuration per protocol, overridden by
            each definition's own ``config``.  Defaults to the environment
            (:meth:`FSVolumeConfig.from_env`, :meth:`S3VolumeConfig.from_env`).
    """

    def __init__(
        self,
        volumes: Mapping[str, VolumeDefinition | Mapping[str, Any]] | None = None,
        drivers: Mapping[str, DriverFactory] | None = None,
        default_volume: str | None = None,
        driver_defaults: Mapping[str, ConfigInput] | None = None,
    ) -> None:
        self._drivers: dict[str, DriverFactory] = builtin_drivers()
        self._drivers.update(drivers or {})

        self._definitions: dict[str, VolumeDefinition] = builtin_definitions()
        for name, definition in (volumes or {}).items():
            self._definitions[name] = _as_definition(definition)

        if driver_defaults is None:
            driver_defaults = {"fs": FSVolumeConfig.from_env(), "s3": S3VolumeConfig.from_env()}
        self._driver_defaults: dict[str, ConfigInput] = dict(driver_defaults)

        self.default_volume = default_volume or default_volume_name()
        self._volumes: dict[str, VolumeDriver] = {}

    # ------------------------------------------------------------------
    # Volumes
    # ------------------------------------------------------------------

    def get_volume(self, name: str | None = None) -> VolumeDriver:
        """Return the driver for *name*, creating and caching it on first use.

        Raises:
            VolumeError: ``UNKNOWN_VOLUME`` if *name* has no definition or its
                protocol has no registered driver.
        """
        name = name or self.default_volume
        if name in self._volumes:
            return self._volumes[name]

        definition = self._definitions.get(name)
        if definition is None:
            raise VolumeError.unknown_volume(name)

        factory = self.get_driver(definition.protocol)
        if factory is None:
            raise VolumeError.unknown_volume(name, definition.protocol)

        volume = factory(definition.config, defaults=self._driver_defaults.get(definition.protocol))
        self._volumes[name] = volume
        logger.info("Volume %r materialized with %r driver", name, definition.protocol)
        return volume

    def add_volume(
        self,
        name: str,
        definition: VolumeDefinition | Mapping[str, Any],
        overwrite: bool = False,
    ) -> None:
        """Register a volume definition.

        Does nothing if *name* is already defined, unless *overwrite* is set,
        in which case any cached instance is dropped too.
        """
        if name in self._definitions and not overwrite:
            return
        self._definitions[name] = _as_definition(definition)
        self._volumes.pop(name, None)

    def get_definition(self, name: str) -> VolumeDefinition | None:
        return self._definitions.get(name)

    def volume_names(self) -> list[str]:
        return sorted(self._definitions)

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def add_driver(self, protocol: str, factory: DriverFactory) -> None:
        self._drivers[protocol] = factory

    def get_driver(self, protocol: str) -> DriverFactory | None:
        return self._drivers.get(protocol)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close every materialized volume that holds a client."""
        for volume in self._volumes.values():
            aclose = getattr(volume, "aclose", None)
            if aclose is not None:
                await aclose()
        self._volumes.clear()


def _as_definition(definition: VolumeDefinition | Mapping[str, Any]) -> VolumeDefinition:
    if isinstance(definition, VolumeDefinition):
        return definition
    return VolumeDefinition(protocol=definition["protocol"], config=definition.get("config"))


@lru_cache(maxsize=1)
def get_manager() -> VolumeManager:
    """Return the process-wide :class:`VolumeManager` (cached singleton)."""
    return VolumeManager()
