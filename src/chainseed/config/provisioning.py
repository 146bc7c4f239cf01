"""Provisioning defaults for reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_float, env_int, optional_env

DEFAULT_POLL_TIMEOUT_SECONDS: Final[float] = 20.0
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 0.25
DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_MINIMUM_BALANCE: Final[int] = 1_000_000_000
DEFAULT_MOVE_DIR: Final[str] = "move"

ORACLE_PACKAGE_DIR: Final[str] = "pyth-mock"
COIN_PACKAGE_DIR: Final[str] = "coin-mock"
AMM_PACKAGE_DIR: Final[str] = "prop_amm"


@dataclass(frozen=True, slots=True)
class ProvisioningConfig:
    poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    minimum_balance: int = DEFAULT_MINIMUM_BALANCE
    move_dir: Path = Path(DEFAULT_MOVE_DIR)

    def package_path(self, name: str) -> Path:
        return (self.move_dir / name).expanduser().resolve()

    @property
    def oracle_package_path(self) -> Path:
        return self.package_path(ORACLE_PACKAGE_DIR)

    @property
    def coin_package_path(self) -> Path:
        return self.package_path(COIN_PACKAGE_DIR)

    @property
    def amm_package_path(self) -> Path:
        return self.package_path(AMM_PACKAGE_DIR)


def get_provisioning_config() -> ProvisioningConfig:
    return ProvisioningConfig(
        poll_timeout_seconds=env_float("CHAINSEED_POLL_TIMEOUT", DEFAULT_POLL_TIMEOUT_SECONDS),
        poll_interval_seconds=env_float("CHAINSEED_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
        max_attempts=env_int("CHAINSEED_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, minimum=1),
        minimum_balance=env_int("CHAINSEED_MIN_BALANCE", DEFAULT_MINIMUM_BALANCE),
        move_dir=Path(optional_env("CHAINSEED_MOVE_DIR") or DEFAULT_MOVE_DIR),
    )
