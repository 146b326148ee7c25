from __future__ import annotations

from typing import Callable

import torch

from mhlo_runtime.scalar_types import ScalarType
from mhlo_runtime.specs import (
    ANY_ELEMENT,
    INTEGER_OR_BOOL,
    NUMERIC,
    REAL_NUMERIC,
)
from mhlo_runtime.tensors import (
    TensorLike,
    from_storage,
    int64_to_unsigned,
    restore,
    storage_view,
    unary_operand,
    unsigned_to_int64,
)

_TWO_POW_63 = 2.0**63
_TWO_POW_64 = 2.0**64


def _unsigned_to_float64(a: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    if scalar_type.bits < 64:
        return unsigned_to_int64(a, scalar_type).to(torch.float64)
    values = storage_view(a, scalar_type).to(torch.float64)
    return torch.where(values < 0, values + _TWO_POW_64, values)


def _unsigned_from_float64(
    values: torch.Tensor, scalar_type: ScalarType
) -> torch.Tensor:
    if scalar_type.bits < 64:
        return int64_to_unsigned(values.to(torch.int64), scalar_type)
    wrapped = torch.where(values >= _TWO_POW_63, values - _TWO_POW_64, values)
    return from_storage(wrapped.to(torch.int64), scalar_type)


def _copy(a: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    return from_storage(storage_view(a, scalar_type).clone(), scalar_type)


def _float_math(
    op_name: str, fn: Callable[[torch.Tensor], torch.Tensor], x: TensorLike
) -> object:
    # Integer operands are evaluated in double precision and truncated back
    # into their own type.
    a, scalar = unary_operand(x)
    scalar_type = NUMERIC.check(op_name, a)
    if scalar_type.is_wide_unsigned:
        result = _unsigned_from_float64(
            fn(_unsigned_to_float64(a, scalar_type)), scalar_type
        )
    elif scalar_type.is_integer:
        result = fn(a.to(torch.float64)).to(a.dtype)
    else:
        result = fn(a)
    return restore(result, scalar)


def abs(x: TensorLike) -> object:
    """Absolute value; complex operands yield their real-typed modulus."""
    a, scalar = unary_operand(x)
    scalar_type = NUMERIC.check("abs", a)
    if scalar_type.is_integer and not scalar_type.is_signed:
        return restore(_copy(a, scalar_type), scalar)
    return restore(torch.abs(a), scalar)


def bitcast_convert(x: TensorLike, dtype: object) -> object:
    """Reinterpret the bits of every element as ``dtype``.

    Source and destination must have the same bit width; anything else is
    left to torch's ``Tensor.view`` and is not part of the contract.
    """
    a, scalar = unary_operand(x)
    target = ScalarType.from_dtype(dtype)
    result = a.clone(memory_format=torch.contiguous_format).view(target.torch_dtype)
    return restore(result, scalar)


def convert(x: TensorLike, dtype: object) -> object:
    a, scalar = unary_operand(x)
    source = ScalarType.of(a)
    target = ScalarType.from_dtype(dtype)
    if source.is_complex and not target.is_complex:
        a = a.real
    return restore(a.to(target.torch_dtype, copy=True), scalar)


def cos(x: TensorLike) -> object:
    return _float_math("cos", torch.cos, x)


def sin(x: TensorLike) -> object:
    return _float_math("sin", torch.sin, x)


def sqrt(x: TensorLike) -> object:
    return _float_math("sqrt", torch.sqrt, x)


def tanh(x: TensorLike) -> object:
    return _float_math("tanh", torch.tanh, x)


def exp(x: TensorLike) -> object:
    return _float_math("exp", torch.exp, x)


def log(x: TensorLike) -> object:
    return _float_math("log", torch.log, x)


def neg(x: TensorLike) -> object:
    a, scalar = unary_operand(x)
    scalar_type = NUMERIC.check("neg", a)
    if scalar_type.is_wide_unsigned:
        negated = torch.neg(storage_view(a, scalar_type))
        return restore(from_storage(negated, scalar_type), scalar)
    return restore(torch.neg(a), scalar)


def is_finite(x: TensorLike) -> object:
    a, scalar = unary_operand(x)
    ANY_ELEMENT.check("is_finite", a)
    return restore(torch.isfinite(a), scalar)


def floor(x: TensorLike) -> object:
    a, scalar = unary_operand(x)
    scalar_type = REAL_NUMERIC.check("floor", a)
    if scalar_type.is_integer:
        return restore(_copy(a, scalar_type), scalar)
    return restore(torch.floor(a), scalar)


def ceil(x: TensorLike) -> object:
    a, scalar = unary_operand(x)
    scalar_type = REAL_NUMERIC.check("ceil", a)
    if scalar_type.is_integer:
        return restore(_copy(a, scalar_type), scalar)
    return restore(torch.ceil(a), scalar)


def not_(x: TensorLike) -> object:
    """Logical not for booleans, bitwise complement for integers."""
    a, scalar = unary_operand(x)
    scalar_type = INTEGER_OR_BOOL.check("not", a)
    if scalar_type.is_wide_unsigned:
        inverted = torch.bitwise_not(storage_view(a, scalar_type))
        return restore(from_storage(inverted, scalar_type), scalar)
    return restore(torch.bitwise_not(a), scalar)


__all__ = [
    "abs",
    "bitcast_convert",
    "ceil",
    "convert",
    "cos",
    "exp",
    "floor",
    "is_finite",
    "log",
    "neg",
    "not_",
    "sin",
    "sqrt",
    "tanh",
]
