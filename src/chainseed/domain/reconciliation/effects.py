"""Lookup of created objects in transaction effects by type suffix."""

from __future__ import annotations

from typing import TYPE_CHECKING

from chainseed.domain.errors import MissingCreatedObjectError

if TYPE_CHECKING:
    from chainseed.domain.model import CreatedObject, TransactionEffects


def find_created_objects(effects: TransactionEffects, type_suffix: str) -> list[CreatedObject]:
    """Return created objects whose fully qualified type ends with ``type_suffix``.

    Suffixes such as ``::coin::Coin<0x..::mock::USD>`` must not match
    ``::coin::CoinMetadata<...>``, hence ``endswith`` on the whole type.
    """

    return [created for created in effects.created if created.object_type.endswith(type_suffix)]


def find_created_object_ids(effects: TransactionEffects, type_suffix: str) -> list[str]:
    return [created.object_id for created in find_created_objects(effects, type_suffix)]


def find_first_created(effects: TransactionEffects, type_suffix: str) -> CreatedObject | None:
    found = find_created_objects(effects, type_suffix)
    return found[0] if found else None


def require_created(
    effects: TransactionEffects,
    type_suffix: str,
    *,
    label: str,
) -> CreatedObject:
    created = find_first_created(effects, type_suffix)
    if created is None:
        raise MissingCreatedObjectError(
            f"Transaction {effects.digest} did not create an object of type *{type_suffix}",
            label=label,
            stage="extract-effects",
        )
    return created
