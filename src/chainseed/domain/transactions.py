"""Programmable transaction building blocks.

A :class:`TransactionBlock` is an ordered list of commands whose arguments are
typed pure values, object references or results of earlier commands. The
binary encoding is left to the ledger adapter; these types only capture what
the reconciler needs to express.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Literal

from .codec import ensure_u64, normalize_object_id
from .errors import FormatError, RangeError
from .model import SharedObjectRef

DEFAULT_GAS_BUDGET: Final[int] = 100_000_000

PureType = Literal["u8", "u64", "bool", "address", "vector<u8>"]


@dataclass(frozen=True, slots=True)
class PureArg:
    type: PureType
    value: int | bool | str | bytes


@dataclass(frozen=True, slots=True)
class ObjectArg:
    object_id: str


@dataclass(frozen=True, slots=True)
class SharedObjectArg:
    ref: SharedObjectRef


@dataclass(frozen=True, slots=True)
class ResultArg:
    """Result of an earlier command in the same block."""

    command_index: int


type CallArg = PureArg | ObjectArg | SharedObjectArg | ResultArg


@dataclass(frozen=True, slots=True)
class MoveCall:
    target: str
    arguments: tuple[CallArg, ...] = ()
    type_arguments: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PublishPackage:
    package_path: str
    with_unpublished_dependencies: bool = False


type Command = MoveCall | PublishPackage


@dataclass(slots=True)
class TransactionBlock:
    gas_budget: int = DEFAULT_GAS_BUDGET
    commands: list[Command] = field(default_factory=list[Command])

    def move_call(
        self,
        target: str,
        arguments: list[CallArg] | tuple[CallArg, ...] = (),
        type_arguments: tuple[str, ...] = (),
    ) -> ResultArg:
        _validate_target(target)
        self.commands.append(
            MoveCall(target=target, arguments=tuple(arguments), type_arguments=type_arguments)
        )
        return ResultArg(command_index=len(self.commands) - 1)

    def publish(self, package_path: str, *, with_unpublished_dependencies: bool = False) -> None:
        self.commands.append(
            PublishPackage(
                package_path=package_path,
                with_unpublished_dependencies=with_unpublished_dependencies,
            )
        )

    @staticmethod
    def pure_u64(value: int, label: str = "u64 argument") -> PureArg:
        return PureArg(type="u64", value=ensure_u64(value, label))

    @staticmethod
    def pure_u8(value: int) -> PureArg:
        if isinstance(value, bool) or not 0 <= value <= 0xFF:
            raise RangeError(f"u8 argument {value!r} is outside 0..255")
        return PureArg(type="u8", value=value)

    @staticmethod
    def pure_bool(value: bool) -> PureArg:
        return PureArg(type="bool", value=bool(value))

    @staticmethod
    def pure_address(value: str) -> PureArg:
        return PureArg(type="address", value=normalize_object_id(value))

    @staticmethod
    def pure_bytes(value: bytes) -> PureArg:
        return PureArg(type="vector<u8>", value=bytes(value))

    @staticmethod
    def object(object_id: str) -> ObjectArg:
        return ObjectArg(object_id=normalize_object_id(object_id))

    @staticmethod
    def shared_object(ref: SharedObjectRef) -> SharedObjectArg:
        return SharedObjectArg(ref=ref)

    @property
    def is_publish(self) -> bool:
        return any(isinstance(command, PublishPackage) for command in self.commands)


def _validate_target(target: str) -> None:
    parts = target.split("::")
    if len(parts) != 3 or not all(parts):
        raise FormatError(f"Move call target must be <package>::<module>::<function>: {target!r}")
    normalize_object_id(parts[0])


def move_target(package_id: str, module: str, function: str) -> str:
    return f"{normalize_object_id(package_id)}::{module}::{function}"
