"""Pydantic models describing Sui JSON-RPC and CLI ``--json`` payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SuiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RpcError(SuiBaseModel):
    code: int
    message: str
    data: Any | None = None


class RpcEnvelope(SuiBaseModel):
    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: Any | None = None
    error: RpcError | None = None


# --- Objects -----------------------------------------------------------------


class SharedOwner(SuiBaseModel):
    initial_shared_version: int | str


class ObjectOwner(SuiBaseModel):
    """One of the owner variants; unset fields are absent in the payload."""

    address_owner: str | None = Field(default=None, alias="AddressOwner")
    object_owner: str | None = Field(default=None, alias="ObjectOwner")
    shared: SharedOwner | None = Field(default=None, alias="Shared")


class ObjectContent(SuiBaseModel):
    data_type: Literal["moveObject", "package"] = Field(alias="dataType")
    type: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class ObjectData(SuiBaseModel):
    object_id: str = Field(alias="objectId")
    version: int | str | None = None
    digest: str | None = None
    type: str | None = None
    # "Immutable" is a bare string; the other owner variants are objects.
    owner: ObjectOwner | str | None = None
    content: ObjectContent | None = None


class ObjectResponseError(SuiBaseModel):
    code: str
    object_id: str | None = None


class ObjectResponse(SuiBaseModel):
    data: ObjectData | None = None
    error: ObjectResponseError | None = None


class OwnedObjectsPage(SuiBaseModel):
    data: list[ObjectResponse] = Field(default_factory=list["ObjectResponse"])
    next_cursor: str | None = Field(default=None, alias="nextCursor")
    has_next_page: bool = Field(default=False, alias="hasNextPage")


class PastObjectResponse(SuiBaseModel):
    status: str
    details: ObjectData | dict[str, Any] | str | None = None


# --- Transactions ------------------------------------------------------------


class ExecutionStatus(SuiBaseModel):
    status: Literal["success", "failure"]
    error: str | None = None


class TransactionEffectsPayload(SuiBaseModel):
    status: ExecutionStatus
    transaction_digest: str | None = Field(default=None, alias="transactionDigest")


class ObjectChange(SuiBaseModel):
    type: str
    object_id: str | None = Field(default=None, alias="objectId")
    object_type: str | None = Field(default=None, alias="objectType")
    package_id: str | None = Field(default=None, alias="packageId")
    owner: ObjectOwner | str | None = None
    version: int | str | None = None
    digest: str | None = None


class TransactionBlockResponse(SuiBaseModel):
    digest: str | None = None
    effects: TransactionEffectsPayload | None = None
    object_changes: list[ObjectChange] = Field(
        default_factory=list["ObjectChange"], alias="objectChanges"
    )
    errors: list[str] = Field(default_factory=list)


# --- Coins -------------------------------------------------------------------


class CoinMetadataPayload(SuiBaseModel):
    id: str | None = None
    decimals: int | None = None
    name: str | None = None
    symbol: str | None = None
    description: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")


class BalancePayload(SuiBaseModel):
    coin_type: str = Field(alias="coinType")
    coin_object_count: int = Field(default=0, alias="coinObjectCount")
    total_balance: int | str = Field(alias="totalBalance")


# --- Faucet ------------------------------------------------------------------


class FaucetResponse(SuiBaseModel):
    status: str | dict[str, Any] | None = None
    error: str | None = None
