"""Submit transactions through the ``sui`` command-line client.

The CLI owns the keystore, so signing always happens with its active address.
Programmable blocks are rendered into ``sui client ptb`` arguments; publish
blocks use ``sui client publish``.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from chainseed.domain.codec import normalize_object_id, same_object_id
from chainseed.domain.errors import (
    AuthorizationError,
    FormatError,
    LedgerUnavailableError,
    TransactionFailedError,
)
from chainseed.domain.transactions import (
    MoveCall,
    ObjectArg,
    PublishPackage,
    PureArg,
    ResultArg,
    SharedObjectArg,
)

from .schema import TransactionBlockResponse
from .translator import SuiPayloadError, validate_payload

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainseed.domain.ports import Signer
    from chainseed.domain.transactions import CallArg, TransactionBlock

log = getLogger(__name__)

DEFAULT_CLI_TIMEOUT_SECONDS: Final[float] = 300.0


def _result_name(index: int) -> str:
    return f"r{index}"


def render_pure(arg: PureArg) -> str:
    match arg.type:
        case "u8" | "u64":
            return f"{arg.value}{arg.type}"
        case "bool":
            return "true" if arg.value else "false"
        case "address":
            return f"@{arg.value}"
        case "vector<u8>":
            if not isinstance(arg.value, bytes):
                raise FormatError(f"vector<u8> argument must be bytes, got {arg.value!r}")
            return "vector[" + ",".join(f"{byte}u8" for byte in arg.value) + "]"


def render_argument(arg: CallArg) -> str:
    match arg:
        case PureArg():
            return render_pure(arg)
        case ObjectArg(object_id=object_id):
            return f"@{object_id}"
        case SharedObjectArg(ref=ref):
            return f"@{normalize_object_id(ref.object_id)}"
        case ResultArg(command_index=index):
            return _result_name(index)


def render_ptb(block: TransactionBlock) -> list[str]:
    """Render a block of Move calls into ``sui client ptb`` arguments."""

    referenced = {
        arg.command_index
        for command in block.commands
        if isinstance(command, MoveCall)
        for arg in command.arguments
        if isinstance(arg, ResultArg)
    }

    args: list[str] = ["client", "ptb"]
    for index, command in enumerate(block.commands):
        if not isinstance(command, MoveCall):
            raise FormatError("Publish commands cannot be combined with Move calls")
        args.extend(["--move-call", command.target])
        if command.type_arguments:
            args.append("<" + ",".join(command.type_arguments) + ">")
        args.extend(render_argument(arg) for arg in command.arguments)
        if index in referenced:
            args.extend(["--assign", _result_name(index)])
    args.extend(["--gas-budget", str(block.gas_budget)])
    return args


def render_publish(block: TransactionBlock) -> list[str]:
    if len(block.commands) != 1 or not isinstance(block.commands[0], PublishPackage):
        raise FormatError("A publish block must hold exactly one publish command")
    command = block.commands[0]
    args = ["client", "publish", command.package_path]
    if command.with_unpublished_dependencies:
        args.append("--with-unpublished-dependencies")
    args.extend(["--gas-budget", str(block.gas_budget)])
    return args


def render_block(block: TransactionBlock, *, dry_run: bool = False) -> list[str]:
    if not block.commands:
        raise FormatError("Transaction block has no commands")
    args = render_publish(block) if block.is_publish else render_ptb(block)
    if dry_run:
        args.append("--dry-run")
    args.append("--json")
    return args


def _extract_json(stdout: str) -> Any:
    # The CLI may print version warnings before the JSON document.
    start = min(
        (index for index in (stdout.find("{"), stdout.find("[")) if index >= 0),
        default=-1,
    )
    if start < 0:
        raise SuiPayloadError("sui CLI printed no JSON output", stage="decode-payload")
    try:
        return json.loads(stdout[start:])
    except json.JSONDecodeError as exc:
        raise SuiPayloadError(
            f"sui CLI printed invalid JSON: {exc}", stage="decode-payload"
        ) from exc


@dataclass(slots=True)
class SuiCliRunner:
    binary: str = "sui"
    timeout_seconds: float = DEFAULT_CLI_TIMEOUT_SECONDS
    _active_address: str | None = field(default=None, init=False)

    async def run(self, args: Sequence[str]) -> str:
        log.debug("Running %s %s", self.binary, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise LedgerUnavailableError(
                f"sui binary {self.binary!r} not found", stage="cli"
            ) from exc
        except OSError as exc:
            raise LedgerUnavailableError(
                f"Could not start {self.binary!r}: {exc}", stage="cli"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise LedgerUnavailableError(
                f"sui {' '.join(args[:2])} timed out after {self.timeout_seconds:.0f}s",
                stage="cli",
            ) from exc

        out = stdout.decode(errors="replace")
        if process.returncode != 0:
            err = stderr.decode(errors="replace").strip() or out.strip()
            raise TransactionFailedError(err or f"sui exited with {process.returncode}")
        return out

    async def active_address(self) -> str:
        if self._active_address is None:
            lines = (await self.run(["client", "active-address"])).strip().splitlines()
            if not lines:
                raise LedgerUnavailableError("sui client has no active address", stage="cli")
            self._active_address = normalize_object_id(lines[-1])
        return self._active_address

    async def execute(
        self,
        block: TransactionBlock,
        signer: Signer,
        *,
        dry_run: bool = False,
    ) -> TransactionBlockResponse:
        active = await self.active_address()
        if not same_object_id(active, signer.address):
            raise AuthorizationError(
                f"sui CLI signs as {active}, not {signer.address}",
                stage="cli",
            )
        output = await self.run(render_block(block, dry_run=dry_run))
        return validate_payload(TransactionBlockResponse, _extract_json(output), what="sui CLI")


@dataclass(frozen=True, slots=True)
class ActiveAddressSigner:
    """Signer for whatever address the local ``sui`` client has active."""

    address: str

    @classmethod
    async def load(cls, runner: SuiCliRunner) -> ActiveAddressSigner:
        return cls(address=await runner.active_address())
