"""Public interface for the Sui ledger adapter."""

from __future__ import annotations

from .cli import ActiveAddressSigner, SuiCliRunner, render_block
from .client import SuiRpcClient, SuiRpcError
from .faucet import FaucetClient
from .ledger import SuiLedgerClient
from .translator import SuiPayloadError, translate_object, translate_transaction

__all__ = [
    "ActiveAddressSigner",
    "FaucetClient",
    "SuiCliRunner",
    "SuiLedgerClient",
    "SuiPayloadError",
    "SuiRpcClient",
    "SuiRpcError",
    "render_block",
    "translate_object",
    "translate_transaction",
]
