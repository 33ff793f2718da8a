from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from sui_ptb_resolver.errors import ValidationError
from sui_ptb_resolver.models import (
    GasCoin,
    InputArg,
    InstructionGroup,
    NestedResultArg,
    ResultArg,
    command_arguments,
)


@dataclass
class CausalityValidation:
    """Result of instruction-group causality validation with reference counts."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    command_count: int = 0
    input_references_valid: int = 0
    input_references_total: int = 0
    result_references_valid: int = 0
    result_references_total: int = 0

    @property
    def causality_score(self) -> float:
        """Ratio of valid result references (1.0 if no references or all valid)."""
        if self.result_references_total == 0:
            return 1.0
        return self.result_references_valid / self.result_references_total


def validate_causality_detailed(group: InstructionGroup, arities: Sequence[int] | None = None) -> CausalityValidation:
    """
    Validate that every argument of an instruction group points backwards.

    Invariants checked:
    1. Input(i) refers to an existing input (i < len(inputs))
    2. Result(i) / NestedResult(i, j) refer to an earlier command (i < current command index)
    3. When ``arities`` is given, NestedResult(i, j) has j < arities[i]

    Returns:
        CausalityValidation with validity status, errors and reference counts.
    """
    errors: list[str] = []
    input_valid = input_total = 0
    result_valid = result_total = 0
    n_inputs = len(group.inputs)

    if arities is not None and len(arities) != len(group.commands):
        errors.append(f"{len(arities)} arities given for {len(group.commands)} commands")
        arities = None

    for i, cmd in enumerate(group.commands):
        for arg_i, arg in enumerate(command_arguments(cmd)):
            if isinstance(arg, GasCoin):
                continue
            if isinstance(arg, InputArg):
                input_total += 1
                if arg.index >= n_inputs:
                    errors.append(f"Command {i}, arg {arg_i}: input {arg.index} does not exist ({n_inputs} inputs)")
                else:
                    input_valid += 1
                continue
            if isinstance(arg, (ResultArg, NestedResultArg)):
                result_total += 1
                if arg.index >= i:
                    errors.append(
                        f"Causality violation in command {i}: references result {arg.index} "
                        f"which hasn't been produced yet"
                    )
                elif isinstance(arg, NestedResultArg) and arities is not None and arg.nested_index >= arities[arg.index]:
                    errors.append(
                        f"Command {i}, arg {arg_i}: nested result {arg.index}.{arg.nested_index} "
                        f"exceeds arity {arities[arg.index]}"
                    )
                else:
                    result_valid += 1
                continue
            raise TypeError(f"unknown argument variant: {type(arg).__name__}")

    return CausalityValidation(
        valid=not errors,
        errors=errors,
        command_count=len(group.commands),
        input_references_valid=input_valid,
        input_references_total=input_total,
        result_references_valid=result_valid,
        result_references_total=result_total,
    )


def validate_causality(group: InstructionGroup, arities: Sequence[int] | None = None) -> None:
    """
    Raises:
        ValidationError: If any reference in the group points forward or out of range.
    """
    result = validate_causality_detailed(group, arities)
    if not result.valid:
        raise ValidationError("instruction_group", result.errors[0])
