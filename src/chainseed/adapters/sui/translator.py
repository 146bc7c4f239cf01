"""Translate Sui payloads into domain objects."""

from __future__ import annotations

from collections.abc import Mapping
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from pydantic import ValidationError

from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import FormatError
from chainseed.domain.model import (
    MOVE_OBJECT_DATA_TYPE,
    PACKAGE_DATA_TYPE,
    CreatedObject,
    DiscoveredResource,
    SharedObjectRef,
    TransactionEffects,
)

from .schema import ObjectData, ObjectOwner, TransactionBlockResponse

if TYPE_CHECKING:
    from pydantic import BaseModel

log = getLogger(__name__)


class SuiPayloadError(FormatError):
    """A ledger payload did not have the expected shape."""


def validate_payload[M: BaseModel](model: type[M], payload: object, *, what: str) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise SuiPayloadError(f"Unexpected {what} payload: {exc}", stage="decode-payload") from exc


def _as_int(value: int | str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise SuiPayloadError(
            f"Expected an integer, got {value!r}", stage="decode-payload"
        ) from exc


def unwrap_move_value(value: Any) -> Any:
    """Strip the ``{"type": ..., "fields": {...}}`` wrappers from nested structs.

    ``UID`` values (``{"id": "0x.."}``) collapse to the id string.
    """

    if isinstance(value, Mapping):
        mapping = cast(Mapping[str, Any], value)
        if "fields" in mapping and isinstance(mapping["fields"], Mapping):
            return unwrap_move_fields(cast(Mapping[str, Any], mapping["fields"]))
        if set(mapping) == {"id"} and isinstance(mapping["id"], str):
            return mapping["id"]
        return unwrap_move_fields(mapping)
    if isinstance(value, list):
        return [unwrap_move_value(item) for item in cast(list[Any], value)]
    return value


def unwrap_move_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {name: unwrap_move_value(value) for name, value in fields.items()}


def translate_owner(
    object_id: str,
    owner: ObjectOwner | str | None,
) -> tuple[str | None, SharedObjectRef | None]:
    if owner is None or isinstance(owner, str):
        return owner, None
    if owner.shared is not None:
        version = _as_int(owner.shared.initial_shared_version)
        return "shared", SharedObjectRef(
            object_id=object_id,
            initial_shared_version=version or 0,
        )
    return owner.address_owner or owner.object_owner, None


def translate_object(data: ObjectData) -> DiscoveredResource:
    object_id = normalize_object_id(data.object_id)
    owner, shared_ref = translate_owner(object_id, data.owner)

    content = data.content
    if content is not None and content.data_type == PACKAGE_DATA_TYPE:
        return DiscoveredResource(
            object_id=object_id,
            object_type=None,
            data_type=PACKAGE_DATA_TYPE,
            owner=owner,
            version=_as_int(data.version),
        )

    return DiscoveredResource(
        object_id=object_id,
        object_type=data.type or (content.type if content else None),
        data_type=MOVE_OBJECT_DATA_TYPE,
        owner=owner,
        shared_ref=shared_ref,
        version=_as_int(data.version),
        content_fields=unwrap_move_fields(content.fields) if content else {},
    )


def translate_transaction(response: TransactionBlockResponse) -> TransactionEffects:
    """Collect status, created objects and the published package of a transaction."""

    if response.effects is None:
        raise SuiPayloadError(
            f"Transaction {response.digest or '<unknown>'} has no effects; "
            "request it with showEffects",
            stage="decode-payload",
        )

    digest = response.digest or response.effects.transaction_digest or ""
    created: list[CreatedObject] = []
    published_package_id: str | None = None
    for change in response.object_changes:
        if change.type == "published" and change.package_id:
            published_package_id = normalize_object_id(change.package_id)
        elif change.type == "created" and change.object_id and change.object_type:
            object_id = normalize_object_id(change.object_id)
            owner, shared_ref = translate_owner(object_id, change.owner)
            created.append(
                CreatedObject(
                    object_id=object_id,
                    object_type=change.object_type,
                    owner=owner,
                    initial_shared_version=(
                        shared_ref.initial_shared_version if shared_ref else None
                    ),
                    digest=change.digest,
                )
            )

    status = response.effects.status
    if status.status == "failure":
        log.debug("Transaction %s failed: %s", digest, status.error)
    return TransactionEffects(
        digest=digest,
        status=status.status,
        created=tuple(created),
        published_package_id=published_package_id,
        error=status.error,
    )
