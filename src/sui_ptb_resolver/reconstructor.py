"""Replay a resolved instruction group into a live ProgrammableTransaction."""

from __future__ import annotations

import logging

from sui_ptb_resolver.codec import decode_instruction_group
from sui_ptb_resolver.converters import bytes_to_address
from sui_ptb_resolver.errors import ValidationError
from sui_ptb_resolver.models import (
    Argument,
    Command,
    GasCoin,
    Input,
    InputArg,
    InstructionGroup,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResultArg,
    OwnedObjectInput,
    PureInput,
    ReceivingObjectInput,
    ResultArg,
    SharedObjectInput,
    SplitCoins,
    TransferObjects,
)
from sui_ptb_resolver.transaction import ProgrammableTransaction, TransactionArgument, TxResult

logger = logging.getLogger(__name__)


class TransactionReconstructor:
    """
    Turns positional references into live transaction handles.

    Inputs are replayed first, then commands in order. Each command's result
    handles are recorded so later commands can refer to them:
    SplitCoins yields one handle per amount, MakeMoveVec one, TransferObjects
    and MergeCoins none. A MoveCall's result count is unknown locally, so any
    nested index into it is accepted.
    """

    def __init__(self) -> None:
        self.tx = ProgrammableTransaction()
        self._input_handles: list[TransactionArgument] = []
        self._results: list[TxResult] = []

    @classmethod
    def from_bcs(cls, data: bytes) -> ProgrammableTransaction:
        return cls().build(decode_instruction_group(data))

    def build(self, group: InstructionGroup) -> ProgrammableTransaction:
        self.tx = ProgrammableTransaction()
        self._input_handles = []
        self._results = []
        for inp in group.inputs:
            self._input_handles.append(self._process_input(inp))
        for i, cmd in enumerate(group.commands):
            self._results.append(self._process_command(i, cmd))
        logger.debug(f"Reconstructed transaction: {len(group.inputs)} inputs, {len(group.commands)} commands")
        return self.tx

    def _process_input(self, inp: Input) -> TransactionArgument:
        if isinstance(inp, PureInput):
            # data is already BCS-encoded by the resolver
            return self.tx.pure(inp.data, inp.type_name)
        if isinstance(inp, OwnedObjectInput):
            return self.tx.object(bytes_to_address(inp.object_ref.object_id))
        if isinstance(inp, SharedObjectInput):
            return self.tx.object(bytes_to_address(inp.shared_ref.object_id), mutable=inp.shared_ref.mutable)
        if isinstance(inp, ReceivingObjectInput):
            return self.tx.object(bytes_to_address(inp.object_ref.object_id), receiving=True)
        raise TypeError(f"unknown input variant: {type(inp).__name__}")

    def _process_command(self, position: int, cmd: Command) -> TxResult:
        if isinstance(cmd, MoveCall):
            return self.tx.move_call(
                f"{bytes_to_address(cmd.package)}::{cmd.module}::{cmd.function}",
                [self._resolve(position, a) for a in cmd.arguments],
                cmd.type_arguments,
            )
        if isinstance(cmd, TransferObjects):
            return self.tx.transfer_objects(
                [self._resolve(position, a) for a in cmd.objects], self._resolve(position, cmd.recipient)
            )
        if isinstance(cmd, SplitCoins):
            return self.tx.split_coins(self._resolve(position, cmd.coin), [self._resolve(position, a) for a in cmd.amounts])
        if isinstance(cmd, MergeCoins):
            return self.tx.merge_coins(
                self._resolve(position, cmd.destination), [self._resolve(position, a) for a in cmd.sources]
            )
        if isinstance(cmd, MakeMoveVec):
            return self.tx.make_move_vec(cmd.type_tag, [self._resolve(position, a) for a in cmd.elements])
        raise TypeError(f"unknown command variant: {type(cmd).__name__}")

    def _resolve(self, position: int, arg: Argument) -> TransactionArgument:
        if isinstance(arg, GasCoin):
            return self.tx.gas
        if isinstance(arg, InputArg):
            if not 0 <= arg.index < len(self._input_handles):
                raise ValidationError("argument", f"command {position}: input handle not found at index {arg.index}")
            return self._input_handles[arg.index]
        if isinstance(arg, (ResultArg, NestedResultArg)):
            if arg.index >= position:
                raise ValidationError(
                    "argument", f"command {position}: forward reference to result of command {arg.index}"
                )
            result = self._results[arg.index]
            if isinstance(arg, ResultArg):
                if result.count == 0:
                    raise ValidationError("argument", f"command {position}: command {arg.index} has no results")
                return result
            if result.count is not None and arg.nested_index >= result.count:
                raise ValidationError(
                    "argument",
                    f"command {position}: nested result {arg.index}.{arg.nested_index} "
                    f"but command {arg.index} has {result.count} results",
                )
            return result[arg.nested_index]
        raise TypeError(f"unknown argument variant: {type(arg).__name__}")
