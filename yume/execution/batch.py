"""
TransactionBatch: the atomic operation batch handed to the signer.

A batch is an ordered list of commands over a shared input table. Commands
may consume the outputs of earlier commands through Result handles, which is
how data dependencies between operations inside one all-or-nothing unit are
expressed.

Primitive vocabulary:
    object(id)                          shared/owned object input
    pure(value, type)                   literal input (u8, u64, bool, id, address)
    gas                                 the gas coin
    split_coins(coin, amounts)          split amounts off a larger coin
    move_call(target, args, types, n)   invoke a remote function, n outputs

Linear resources:
    receipt(result) turns a command output into a MatchReceipt. A receipt
    must be consume()d exactly once by a later command in the same batch.
    seal() refuses to freeze a batch that still holds an open receipt, so a
    sealed batch never contains a "matched but unsettled" state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from yume.core.errors import InvalidInput, LinearResourceError

U64_MAX = 2**64 - 1
U8_MAX = 2**8 - 1

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def require_address(name: str, value: Any) -> str:
    if not value:
        raise InvalidInput(f"{name} is required")
    if not is_address(value):
        raise InvalidInput(f"{name} is not a valid object id/address: {value!r}")
    return value


# ===== Arguments =====

class Argument:
    """Something a command can take as an argument."""

    def to_dict(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class InputArg(Argument):
    index: int

    def to_dict(self) -> Any:
        return {"Input": self.index}


@dataclass(frozen=True)
class GasCoinArg(Argument):
    def to_dict(self) -> Any:
        return "GasCoin"


@dataclass(frozen=True)
class ResultArg(Argument):
    command: int
    nested: Optional[int] = None

    def to_dict(self) -> Any:
        if self.nested is None:
            return {"Result": self.command}
        return {"NestedResult": [self.command, self.nested]}


# ===== Inputs =====

@dataclass(frozen=True)
class ObjectInput:
    object_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "object", "objectId": self.object_id}


@dataclass(frozen=True)
class PureInput:
    type: str
    value: Union[int, bool, str]

    def to_dict(self) -> Dict[str, Any]:
        # u64 values travel as decimal strings to survive JSON number limits
        value = str(self.value) if isinstance(self.value, int) and not isinstance(self.value, bool) else self.value
        return {"kind": "pure", "type": self.type, "value": value}


# ===== Commands =====

@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: Tuple[Argument, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"SplitCoins": {"coin": self.coin.to_dict(), "amounts": [a.to_dict() for a in self.amounts]}}


@dataclass(frozen=True)
class MoveCall:
    target: str
    type_arguments: Tuple[str, ...]
    arguments: Tuple[Argument, ...]

    @property
    def function(self) -> str:
        """module::function part of the target."""
        return self.target.split("::", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "MoveCall": {
                "target": self.target,
                "typeArguments": list(self.type_arguments),
                "arguments": [a.to_dict() for a in self.arguments],
            }
        }


Command = Union[SplitCoins, MoveCall]


# ===== Linear receipt =====

class MatchReceipt:
    """
    Linear handle for a match output inside one batch.

    Cannot be copied, pickled or consumed twice. The only way to
    get at the underlying output is consume(), which the settle step calls.
    """

    __slots__ = ("_result", "_batch", "_consumed")

    def __init__(self, batch: "TransactionBatch", result: ResultArg) -> None:
        self._batch = batch
        self._result = result
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self, batch: "TransactionBatch") -> ResultArg:
        if batch is not self._batch:
            raise LinearResourceError("MatchReceipt consumed outside the batch that produced it")
        if self._consumed:
            raise LinearResourceError("MatchReceipt already consumed")
        self._consumed = True
        batch._release(self)
        return self._result

    def __copy__(self):
        raise LinearResourceError("MatchReceipt cannot be copied")

    def __deepcopy__(self, memo):
        raise LinearResourceError("MatchReceipt cannot be copied")

    def __reduce_ex__(self, protocol):
        raise LinearResourceError("MatchReceipt cannot be serialized")

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "open"
        return f"<MatchReceipt {self._result.to_dict()} {state}>"


# ===== Batch =====

_PURE_TYPES = ("u8", "u64", "bool", "id", "address")


class TransactionBatch:
    def __init__(self) -> None:
        self._inputs: List[Union[ObjectInput, PureInput]] = []
        self._object_index: Dict[str, int] = {}
        self._commands: List[Command] = []
        self._open_receipts: List[MatchReceipt] = []
        self._sealed = False

    # ----- inspection -----

    @property
    def inputs(self) -> Tuple[Union[ObjectInput, PureInput], ...]:
        return tuple(self._inputs)

    @property
    def commands(self) -> Tuple[Command, ...]:
        return tuple(self._commands)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def open_receipts(self) -> int:
        return len(self._open_receipts)

    def functions(self) -> List[str]:
        """Command names in order, e.g. ["SplitCoins", "market::settle"]."""
        return [c.function if isinstance(c, MoveCall) else "SplitCoins" for c in self._commands]

    def __len__(self) -> int:
        return len(self._commands)

    # ----- inputs -----

    def object(self, object_id: str) -> InputArg:
        self._ensure_open()
        require_address("object id", object_id)
        key = object_id.lower()
        if key not in self._object_index:
            self._object_index[key] = len(self._inputs)
            self._inputs.append(ObjectInput(object_id))
        return InputArg(self._object_index[key])

    def pure(self, value: Union[int, bool, str], type_: str = "u64") -> InputArg:
        self._ensure_open()
        if type_ not in _PURE_TYPES:
            raise InvalidInput(f"unsupported pure type {type_}")
        if type_ in ("u8", "u64"):
            limit = U8_MAX if type_ == "u8" else U64_MAX
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidInput(f"{type_} value must be an integer, got {value!r}")
            if not 0 <= value <= limit:
                raise InvalidInput(f"{type_} value out of range: {value}")
        elif type_ == "bool":
            if not isinstance(value, bool):
                raise InvalidInput(f"bool value expected, got {value!r}")
        else:
            require_address(type_, value)
        self._inputs.append(PureInput(type_, value))
        return InputArg(len(self._inputs) - 1)

    @property
    def gas(self) -> GasCoinArg:
        return GasCoinArg()

    # ----- commands -----

    def split_coins(self, coin: Argument, amounts: Sequence[Union[int, Argument]]) -> List[ResultArg]:
        self._ensure_open()
        if not amounts:
            raise InvalidInput("split_coins needs at least one amount")
        coin_arg = self._argument(coin)
        amount_args = tuple(
            a if isinstance(a, Argument) else self.pure(a, "u64") for a in amounts
        )
        cmd = len(self._commands)
        self._commands.append(SplitCoins(coin_arg, amount_args))
        return [ResultArg(cmd, i) for i in range(len(amount_args))]

    def move_call(
        self,
        target: str,
        arguments: Sequence[Argument] = (),
        type_arguments: Sequence[str] = (),
        returns: int = 0,
    ) -> List[ResultArg]:
        self._ensure_open()
        if target.count("::") != 2 or not all(target.split("::")):
            raise InvalidInput(f"move call target must be package::module::function, got {target!r}")
        if any(not t for t in type_arguments):
            raise InvalidInput(f"{target}: empty type argument")
        args = tuple(self._argument(a) for a in arguments)
        cmd = len(self._commands)
        self._commands.append(MoveCall(target, tuple(type_arguments), args))
        return [ResultArg(cmd, i) for i in range(returns)]

    def receipt(self, result: ResultArg) -> MatchReceipt:
        """Mark a command output as a linear MatchReceipt owned by this batch."""
        self._ensure_open()
        if not isinstance(result, ResultArg) or result.command >= len(self._commands):
            raise InvalidInput("receipt must wrap an output of this batch")
        r = MatchReceipt(self, result)
        self._open_receipts.append(r)
        return r

    def _release(self, receipt: MatchReceipt) -> None:
        self._open_receipts = [r for r in self._open_receipts if r is not receipt]

    def _argument(self, arg: Any) -> Argument:
        if isinstance(arg, MatchReceipt):
            raise LinearResourceError("pass a MatchReceipt through consume(), not as a plain argument")
        if not isinstance(arg, Argument):
            raise InvalidInput(f"not a batch argument: {arg!r}")
        if isinstance(arg, InputArg) and not 0 <= arg.index < len(self._inputs):
            raise InvalidInput(f"input {arg.index} does not exist in this batch")
        if isinstance(arg, ResultArg) and not 0 <= arg.command < len(self._commands):
            raise InvalidInput(f"result of command {arg.command} does not exist yet")
        return arg

    def _ensure_open(self) -> None:
        if self._sealed:
            raise InvalidInput("batch is sealed")

    # ----- finalize -----

    def seal(self) -> "TransactionBatch":
        """Validate and freeze. Idempotent."""
        if self._sealed:
            return self
        if self._open_receipts:
            raise LinearResourceError(
                f"{len(self._open_receipts)} MatchReceipt(s) left unconsumed; pair every match with a settle"
            )
        if not self._commands:
            raise InvalidInput("batch has no commands")
        self._sealed = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        self.seal()
        return {
            "inputs": [i.to_dict() for i in self._inputs],
            "commands": [c.to_dict() for c in self._commands],
        }

    def __repr__(self) -> str:
        return f"<TransactionBatch {' -> '.join(self.functions()) or 'empty'}{' sealed' if self._sealed else ''}>"
