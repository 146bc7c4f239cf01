from __future__ import annotations

import pytest

from chainseed.adapters.sui import SuiPayloadError, translate_object, translate_transaction
from chainseed.adapters.sui.schema import ObjectData, TransactionBlockResponse
from chainseed.adapters.sui.translator import unwrap_move_value
from chainseed.domain.model import PACKAGE_DATA_TYPE
from tests.support.ledger import oid


def test_package_objects_have_no_struct_type() -> None:
    data = ObjectData.model_validate(
        {
            "objectId": "0xa11",
            "version": 1,
            "owner": "Immutable",
            "content": {"dataType": "package", "disassembled": {}},
        }
    )

    discovered = translate_object(data)

    assert discovered.is_package
    assert discovered.data_type == PACKAGE_DATA_TYPE
    assert discovered.object_type is None
    assert discovered.owner == "Immutable"


def test_owned_object_keeps_its_owner() -> None:
    data = ObjectData.model_validate(
        {
            "objectId": "0xca9",
            "type": "0xa11::manager::AMMAdminCap",
            "owner": {"AddressOwner": "0xa11ce"},
        }
    )

    discovered = translate_object(data)

    assert discovered.owner == "0xa11ce"
    assert discovered.shared_ref is None
    assert discovered.content_fields == {}


def test_nested_structs_are_unwrapped() -> None:
    value = {
        "type": "0x2::balance::Balance",
        "fields": {"value": "10", "inner": {"fields": {"flag": True}}},
    }

    assert unwrap_move_value(value) == {"value": "10", "inner": {"flag": True}}
    assert unwrap_move_value([{"id": "0x1"}]) == ["0x1"]


def test_failed_transaction_carries_the_error() -> None:
    response = TransactionBlockResponse.model_validate(
        {
            "effects": {
                "status": {"status": "failure", "error": "InsufficientGas"},
                "transactionDigest": "F4il",
            },
            "objectChanges": [
                {"type": "created", "objectId": "0x9", "objectType": "0x2::coin::Coin"}
            ],
        }
    )

    effects = translate_transaction(response)

    assert effects.digest == "F4il"
    assert not effects.succeeded
    assert effects.error == "InsufficientGas"
    assert effects.created[0].object_id == oid(0x9)
    assert effects.created[0].initial_shared_version is None


def test_transaction_without_effects_is_rejected() -> None:
    with pytest.raises(SuiPayloadError):
        translate_transaction(TransactionBlockResponse.model_validate({"digest": "x"}))


def test_bad_version_is_rejected() -> None:
    data = ObjectData.model_validate({"objectId": "0x1", "version": "twelve"})

    with pytest.raises(SuiPayloadError):
        translate_object(data)
