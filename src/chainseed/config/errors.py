"""Errors raised while loading chainseed settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """Raised when a setting is present but unusable (bad number, unknown network)."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required environment variables are absent or blank."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")
