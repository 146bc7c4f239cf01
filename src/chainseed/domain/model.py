"""Domain types shared by the reconciler, matcher and adapters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Final

PACKAGE_DATA_TYPE: Final[str] = "package"
MOVE_OBJECT_DATA_TYPE: Final[str] = "moveObject"

_EMPTY: Mapping[str, object] = MappingProxyType({})


class ResourceKind(StrEnum):
    PACKAGE = "package"
    CURRENCY = "currency"
    PRICE_FEED = "price_feed"
    CONFIG_OBJECT = "config_object"


class ProvisionStatus(StrEnum):
    """How a resource reached its provisioned state."""

    REUSED = "reused"
    CREATED = "created"
    RECREATED = "recreated"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """Desired state of one resource, built per reconciliation call."""

    kind: ResourceKind
    label: str
    expected_type_suffix: str | None = None
    match_keys: frozenset[tuple[str, str]] = frozenset()

    def match_value(self, name: str) -> str | None:
        for key, value in self.match_keys:
            if key == name:
                return value
        return None


@dataclass(frozen=True, slots=True)
class SharedObjectRef:
    object_id: str
    initial_shared_version: int
    mutable: bool = True


@dataclass(frozen=True, slots=True)
class DiscoveredResource:
    """Snapshot of a ledger object read at one point in time."""

    object_id: str
    object_type: str | None
    data_type: str = MOVE_OBJECT_DATA_TYPE
    owner: str | None = None
    shared_ref: SharedObjectRef | None = None
    version: int | None = None
    content_fields: Mapping[str, object] = field(default_factory=lambda: _EMPTY)

    @property
    def is_package(self) -> bool:
        return self.data_type == PACKAGE_DATA_TYPE


@dataclass(frozen=True, slots=True)
class ArtifactRecord:
    """Locally persisted identifiers of a provisioned resource."""

    network: str
    kind: ResourceKind
    label: str
    object_id: str
    auxiliary_ids: Mapping[str, str] = field(default_factory=dict[str, str])
    attributes: Mapping[str, str] = field(default_factory=dict[str, str])

    @property
    def key(self) -> str:
        return artifact_key(self.kind, self.label)


def artifact_key(kind: ResourceKind, label: str) -> str:
    return f"{kind.value}/{label}"


@dataclass(frozen=True, slots=True)
class CapabilityHandle:
    object_id: str
    owner_address: str
    granting_store_id: str | None = None


@dataclass(frozen=True, slots=True)
class CreatedObject:
    object_id: str
    object_type: str
    owner: str | None = None
    initial_shared_version: int | None = None
    digest: str | None = None


@dataclass(frozen=True, slots=True)
class TransactionEffects:
    digest: str
    status: str = "success"
    created: tuple[CreatedObject, ...] = ()
    published_package_id: str | None = None
    attempts: int = 1
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True, slots=True)
class PriceFeedConfig:
    label: str
    feed_id_hex: str
    price: int
    confidence: int
    exponent: int


DEFAULT_MOCK_PRICE_FEED: Final[PriceFeedConfig] = PriceFeedConfig(
    label="MOCK_SUI_FEED",
    feed_id_hex="0x202122232425262728292a2b2c2d2e2f303132333435363738393a3b3c3d3e3f",
    # SUI/USD around $1.84 with exponent -2.
    price=184,
    confidence=2,
    exponent=-2,
)


@dataclass(frozen=True, slots=True)
class CurrencySeed:
    label: str
    coin_type: str
    init_target: str


@dataclass(frozen=True, slots=True)
class AmmConfigSettings:
    base_spread_bps: int
    volatility_multiplier_bps: int
    use_laser: bool
    price_feed_id_hex: str
    trading_paused: bool = False


@dataclass(frozen=True, slots=True)
class AmmConfigOverview:
    config_id: str
    base_spread_bps: int
    volatility_multiplier_bps: int
    use_laser: bool
    trading_paused: bool
    price_feed_id_hex: str


@dataclass(frozen=True, slots=True)
class ProvisionedResource:
    kind: ResourceKind
    label: str
    object_id: str
    status: ProvisionStatus
    record: ArtifactRecord
    effects: TransactionEffects | None = None

    @property
    def changed(self) -> bool:
        return self.status is not ProvisionStatus.REUSED
