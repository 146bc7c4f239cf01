"""Equivalence checks between desired descriptors and discovered objects."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from .codec import normalize_hex
from .errors import FormatError, MismatchError
from .model import ResourceKind

if TYPE_CHECKING:
    from .model import DiscoveredResource, ResourceDescriptor

log = getLogger(__name__)

FEED_ID_KEY: Final[str] = "feed_id"

_TYPE_CHECKED_KINDS: Final[frozenset[ResourceKind]] = frozenset(
    {ResourceKind.CURRENCY, ResourceKind.PRICE_FEED, ResourceKind.CONFIG_OBJECT}
)


def object_type_matches(object_type: str | None, expected_suffix: str) -> bool:
    return bool(object_type) and expected_suffix in (object_type or "")


def check(descriptor: ResourceDescriptor, discovered: DiscoveredResource | None) -> None:
    """Raise :class:`MismatchError` unless ``discovered`` satisfies ``descriptor``."""

    def mismatch(reason: str) -> MismatchError:
        return MismatchError(
            reason, kind=descriptor.kind.value, label=descriptor.label, stage="match"
        )

    if discovered is None:
        raise mismatch("object not found on the ledger")

    if descriptor.kind is ResourceKind.PACKAGE:
        if not discovered.is_package:
            raise mismatch(f"object {discovered.object_id} is not a package")
        return

    if descriptor.kind in _TYPE_CHECKED_KINDS and descriptor.expected_type_suffix:
        if not object_type_matches(discovered.object_type, descriptor.expected_type_suffix):
            raise mismatch(
                f"type {discovered.object_type!r} does not contain "
                f"{descriptor.expected_type_suffix!r}"
            )


def matches(descriptor: ResourceDescriptor, discovered: DiscoveredResource | None) -> bool:
    try:
        check(descriptor, discovered)
    except MismatchError as exc:
        log.debug("Match rejected: %s", exc)
        return False
    return True


def _normalized_feed_id(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return normalize_hex(value)
    except FormatError:
        return None


def matches_feed_identity(
    descriptor: ResourceDescriptor,
    *,
    candidate_label: str | None,
    candidate_feed_id: str | None,
) -> bool:
    """Either equal label or equal feed id identifies the same price feed.

    The two keys are independent: a candidate agreeing on only one of them is
    accepted.
    """

    expected_feed_id = _normalized_feed_id(descriptor.match_value(FEED_ID_KEY))
    candidate_id = _normalized_feed_id(candidate_feed_id)
    feed_id_match = expected_feed_id is not None and candidate_id == expected_feed_id
    label_match = bool(candidate_label) and candidate_label == descriptor.label
    return feed_id_match or label_match
