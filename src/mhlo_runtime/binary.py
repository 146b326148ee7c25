from __future__ import annotations

import builtins
import operator
from enum import Enum
from typing import Callable, Dict, Tuple, Union

import torch

from mhlo_runtime.errors import RuntimeBackendError, UnsupportedElementTypeError
from mhlo_runtime.scalar_types import ScalarType
from mhlo_runtime.specs import (
    ANY_ELEMENT,
    INTEGER,
    INTEGER_OR_BOOL,
    NUMERIC,
    REAL_NUMERIC,
    REAL_OR_BOOL,
)
from mhlo_runtime.tensors import (
    TensorLike,
    binary_operands,
    from_bits,
    from_storage,
    int64_to_unsigned,
    restore,
    storage_view,
    unsigned_to_int64,
    unsigned_values,
)


class ComparisonDirection(str, Enum):
    EQ = "EQ"
    NE = "NE"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"

    @property
    def is_ordered(self) -> bool:
        return self not in (ComparisonDirection.EQ, ComparisonDirection.NE)

    @classmethod
    def parse(cls, value: object) -> "ComparisonDirection":
        if isinstance(value, ComparisonDirection):
            return value
        if isinstance(value, str):
            normalized = _DIRECTION_SYMBOLS.get(value.strip(), value.strip().upper())
            try:
                return cls(normalized)
            except ValueError as exc:
                raise RuntimeBackendError(
                    f"unknown comparison direction: {value}"
                ) from exc
        raise RuntimeBackendError(f"unknown comparison direction: {value!r}")


_DIRECTION_SYMBOLS = {
    "==": "EQ",
    "!=": "NE",
    "<": "LT",
    "<=": "LE",
    ">": "GT",
    ">=": "GE",
}

_COMPARATORS: Dict[ComparisonDirection, Callable[[object, object], object]] = {
    ComparisonDirection.EQ: operator.eq,
    ComparisonDirection.NE: operator.ne,
    ComparisonDirection.LT: operator.lt,
    ComparisonDirection.LE: operator.le,
    ComparisonDirection.GT: operator.gt,
    ComparisonDirection.GE: operator.ge,
}

Relation = Union[ComparisonDirection, str, Callable[[torch.Tensor, torch.Tensor], object]]


def _check_nonzero_divisor(op_name: str, divisor: torch.Tensor) -> None:
    if bool((divisor == 0).any()):
        raise ZeroDivisionError(f"integer {op_name} by zero")


def _wide_operands(
    a: torch.Tensor, b: torch.Tensor, scalar_type: ScalarType
) -> Tuple[torch.Tensor, torch.Tensor]:
    if b.dtype != a.dtype:
        b = b.to(a.dtype)
    return storage_view(a, scalar_type), storage_view(b, scalar_type)


def _wrapping(
    fn: Callable[[torch.Tensor, torch.Tensor], torch.Tensor],
    a: torch.Tensor,
    b: torch.Tensor,
    scalar_type: ScalarType,
) -> torch.Tensor:
    # u16/u32/u64 have no torch kernels; wrapping arithmetic and bit logic
    # give the same bits on the signed type of the same width.
    if not scalar_type.is_wide_unsigned:
        return fn(a, b)
    sa, sb = _wide_operands(a, b, scalar_type)
    return from_storage(fn(sa, sb), scalar_type)


def _ordering_key(value: torch.Tensor) -> torch.Tensor:
    # Flipping the sign bit maps unsigned order onto signed order.
    return torch.bitwise_xor(value, torch.iinfo(value.dtype).min)


def _unsigned_exact(
    a: torch.Tensor,
    b: torch.Tensor,
    scalar_type: ScalarType,
    tensor_fn: Callable[[torch.Tensor, torch.Tensor], torch.Tensor],
    int_fn: Callable[[int, int], int],
) -> torch.Tensor:
    """Evaluate on exact unsigned values: int64 below 64 bits, ints above."""
    if b.dtype != a.dtype:
        b = b.to(a.dtype)
    if scalar_type.bits < 64:
        result = tensor_fn(
            unsigned_to_int64(a, scalar_type), unsigned_to_int64(b, scalar_type)
        )
        return int64_to_unsigned(result, scalar_type)
    sa, sb = torch.broadcast_tensors(
        storage_view(a, scalar_type), storage_view(b, scalar_type)
    )
    values = [
        int_fn(left, right)
        for left, right in zip(
            unsigned_values(sa, scalar_type), unsigned_values(sb, scalar_type)
        )
    ]
    return from_bits(values, scalar_type).reshape(sa.shape)


def add(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = ANY_ELEMENT.check("add", a)
    return restore(_wrapping(torch.add, a, b, scalar_type), scalar)


def sub(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = NUMERIC.check("sub", a)
    return restore(_wrapping(torch.sub, a, b, scalar_type), scalar)


def mul(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = ANY_ELEMENT.check("mul", a)
    return restore(_wrapping(torch.mul, a, b, scalar_type), scalar)


def div(x: TensorLike, y: TensorLike) -> object:
    """Element-wise division.

    Integers truncate toward zero and raise ``ZeroDivisionError`` on a zero
    divisor; floating point follows IEEE and yields inf or NaN instead.
    """
    a, b, scalar = binary_operands(x, y)
    scalar_type = NUMERIC.check("div", a)
    if scalar_type.is_wide_unsigned:
        _check_nonzero_divisor("div", _wide_operands(a, b, scalar_type)[1])
        result = _unsigned_exact(
            a,
            b,
            scalar_type,
            lambda left, right: torch.div(left, right, rounding_mode="trunc"),
            operator.floordiv,
        )
        return restore(result, scalar)
    if scalar_type.is_integer:
        _check_nonzero_divisor("div", b)
        return restore(torch.div(a, b, rounding_mode="trunc"), scalar)
    return restore(torch.div(a, b), scalar)


def rem(x: TensorLike, y: TensorLike) -> object:
    """Remainder with the sign of the dividend (C ``fmod``/``%`` semantics)."""
    a, b, scalar = binary_operands(x, y)
    scalar_type = REAL_NUMERIC.check("rem", a)
    if scalar_type.is_wide_unsigned:
        _check_nonzero_divisor("rem", _wide_operands(a, b, scalar_type)[1])
        result = _unsigned_exact(a, b, scalar_type, torch.fmod, operator.mod)
        return restore(result, scalar)
    if scalar_type.is_integer:
        _check_nonzero_divisor("rem", b)
    return restore(torch.fmod(a, b), scalar)


def _select_unsigned(
    a: torch.Tensor, b: torch.Tensor, scalar_type: ScalarType, take_first: Callable
) -> torch.Tensor:
    sa, sb = _wide_operands(a, b, scalar_type)
    chosen = torch.where(take_first(_ordering_key(sa), _ordering_key(sb)), sa, sb)
    return from_storage(chosen, scalar_type)


def max(x: TensorLike, y: TensorLike) -> object:
    """Element-wise maximum; a NaN loses against any number."""
    a, b, scalar = binary_operands(x, y)
    scalar_type = REAL_OR_BOOL.check("max", a)
    if scalar_type.is_bool:
        return restore(torch.logical_or(a, b), scalar)
    if scalar_type.is_float:
        return restore(torch.fmax(a, b), scalar)
    if scalar_type.is_wide_unsigned:
        return restore(_select_unsigned(a, b, scalar_type, operator.ge), scalar)
    return restore(torch.maximum(a, b), scalar)


def min(x: TensorLike, y: TensorLike) -> object:
    """Element-wise minimum; a NaN loses against any number."""
    a, b, scalar = binary_operands(x, y)
    scalar_type = REAL_OR_BOOL.check("min", a)
    if scalar_type.is_bool:
        return restore(torch.logical_and(a, b), scalar)
    if scalar_type.is_float:
        return restore(torch.fmin(a, b), scalar)
    if scalar_type.is_wide_unsigned:
        return restore(_select_unsigned(a, b, scalar_type, operator.le), scalar)
    return restore(torch.minimum(a, b), scalar)


def pow(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = NUMERIC.check("pow", a)
    if scalar_type.is_wide_unsigned:
        modulus = 1 << scalar_type.bits
        result = _unsigned_exact(
            a,
            b,
            scalar_type,
            torch.pow,
            lambda base, exponent: builtins.pow(base, exponent, modulus),
        )
        return restore(result, scalar)
    if not scalar_type.is_integer:
        return restore(torch.pow(a, b), scalar)
    negative = b < 0
    result = torch.pow(a, torch.where(negative, torch.zeros_like(b), b))
    if bool(negative.any()):
        # Only 1 and -1 survive a negative integer exponent; evaluating in
        # double precision and truncating gives the C result.
        approx = torch.pow(a.to(torch.float64), b.to(torch.float64)).to(a.dtype)
        result = torch.where(negative, approx, result)
    return restore(result, scalar)


def compare(
    x: TensorLike, y: TensorLike, direction: Relation = ComparisonDirection.EQ
) -> object:
    """Compare two tensors element-wise under ``direction``.

    ``direction`` is a :class:`ComparisonDirection`, its name or symbol, or a
    callable taking both operand tensors and returning the mask.
    """
    a, b, scalar = binary_operands(x, y)
    if callable(direction):
        result = torch.as_tensor(direction(a, b), dtype=torch.bool)
        return restore(result, scalar)
    direction = ComparisonDirection.parse(direction)
    scalar_type = ANY_ELEMENT.check("compare", a)
    if scalar_type.is_complex and direction.is_ordered:
        raise UnsupportedElementTypeError(
            f"compare {direction.value}", scalar_type.suffix
        )
    if scalar_type.is_wide_unsigned:
        sa, sb = _wide_operands(a, b, scalar_type)
        a, b = _ordering_key(sa), _ordering_key(sb)
    return restore(_COMPARATORS[direction](a, b), scalar)


def and_(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = INTEGER_OR_BOOL.check("and", a)
    return restore(_wrapping(torch.bitwise_and, a, b, scalar_type), scalar)


def or_(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = INTEGER_OR_BOOL.check("or", a)
    return restore(_wrapping(torch.bitwise_or, a, b, scalar_type), scalar)


def xor(x: TensorLike, y: TensorLike) -> object:
    a, b, scalar = binary_operands(x, y)
    scalar_type = INTEGER_OR_BOOL.check("xor", a)
    return restore(_wrapping(torch.bitwise_xor, a, b, scalar_type), scalar)


def _shift_operands(
    op_name: str, x: TensorLike, y: TensorLike
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor, ScalarType, bool]:
    # Shifts run on the signed integer type of the same width so that
    # unsigned operands share one code path; the result is viewed back.
    a, b, scalar = binary_operands(x, y)
    scalar_type = INTEGER.check(op_name, a)
    value = storage_view(a, scalar_type)
    amount_type = ScalarType.of(b)
    if amount_type.is_integer and not amount_type.is_signed:
        amount = storage_view(b, amount_type).to(torch.int64)
    else:
        amount = b.to(torch.int64)
    in_range = (amount >= 0) & (amount < scalar_type.bits)
    return value, amount, in_range, scalar_type, scalar


def shift_left(x: TensorLike, y: TensorLike) -> object:
    value, amount, in_range, scalar_type, scalar = _shift_operands(
        "shift_left", x, y
    )
    safe = torch.where(in_range, amount, torch.zeros_like(amount)).to(value.dtype)
    shifted = torch.bitwise_left_shift(value, safe)
    result = torch.where(in_range, shifted, torch.zeros_like(value))
    return restore(from_storage(result, scalar_type), scalar)


def shift_right_logical(x: TensorLike, y: TensorLike) -> object:
    value, amount, in_range, scalar_type, scalar = _shift_operands(
        "shift_right_logical", x, y
    )
    safe = torch.where(in_range, amount, torch.zeros_like(amount)).to(value.dtype)
    arithmetic = torch.bitwise_right_shift(value, safe)
    # Clear the sign-extended high bits: for a shift s >= 1 only the low
    # (bits - s) bits of the arithmetic shift are kept.
    high_mask = torch.bitwise_right_shift(
        torch.full_like(value, torch.iinfo(value.dtype).max),
        (safe - 1).clamp(min=0),
    )
    logical = torch.where(safe > 0, torch.bitwise_and(arithmetic, high_mask), value)
    result = torch.where(in_range, logical, torch.zeros_like(value))
    return restore(from_storage(result, scalar_type), scalar)


def shift_right_arithmetic(x: TensorLike, y: TensorLike) -> object:
    value, amount, in_range, scalar_type, scalar = _shift_operands(
        "shift_right_arithmetic", x, y
    )
    clamped = torch.where(
        in_range, amount, torch.full_like(amount, scalar_type.bits - 1)
    ).to(value.dtype)
    result = torch.bitwise_right_shift(value, clamped)
    return restore(from_storage(result, scalar_type), scalar)


__all__ = [
    "ComparisonDirection",
    "add",
    "and_",
    "compare",
    "div",
    "max",
    "min",
    "mul",
    "or_",
    "pow",
    "rem",
    "shift_left",
    "shift_right_arithmetic",
    "shift_right_logical",
    "sub",
    "xor",
]
