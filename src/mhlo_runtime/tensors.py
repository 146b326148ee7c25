from __future__ import annotations

import math
import numbers
from typing import List, Sequence, Tuple, Union

import torch

from mhlo_runtime.scalar_types import ScalarType

TensorLike = Union[torch.Tensor, Sequence[object], numbers.Number]
ShapeLike = Union[int, Sequence[int], torch.Tensor]


def is_scalar(value: object) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, torch.Tensor)


def _scalar_dtype(value: numbers.Number) -> torch.dtype:
    if isinstance(value, bool):
        return torch.bool
    if isinstance(value, numbers.Integral):
        return torch.int64
    if isinstance(value, numbers.Real):
        return torch.float64
    return torch.complex128


def as_tensor(value: TensorLike, dtype: torch.dtype | None = None) -> torch.Tensor:
    if isinstance(value, torch.Tensor):
        return value
    if is_scalar(value):
        return torch.tensor(value, dtype=dtype or _scalar_dtype(value))
    return torch.as_tensor(value, dtype=dtype)


def unary_operand(x: TensorLike) -> Tuple[torch.Tensor, bool]:
    return as_tensor(x), is_scalar(x)


def binary_operands(
    x: TensorLike, y: TensorLike
) -> Tuple[torch.Tensor, torch.Tensor, bool]:
    scalar = is_scalar(x) and is_scalar(y)
    if isinstance(x, torch.Tensor) and not isinstance(y, torch.Tensor):
        return x, as_tensor(y, x.dtype), scalar
    if isinstance(y, torch.Tensor) and not isinstance(x, torch.Tensor):
        return as_tensor(x, y.dtype), y, scalar
    return as_tensor(x), as_tensor(y), scalar


def restore(result: torch.Tensor, scalar: bool) -> object:
    if scalar:
        return result.item()
    return result


def shape_dims(shape: ShapeLike) -> Tuple[int, ...]:
    if isinstance(shape, torch.Tensor):
        return tuple(int(dim) for dim in shape.reshape(-1).tolist())
    if isinstance(shape, numbers.Integral):
        return (int(shape),)
    return tuple(int(dim) for dim in shape)


def element_count(shape: ShapeLike) -> int:
    return math.prod(shape_dims(shape))


def flat(x: TensorLike) -> torch.Tensor:
    return as_tensor(x).reshape(-1)


def storage_view(tensor: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    """View ``tensor`` as the signed integer type of the same width."""
    storage = scalar_type.signed_storage
    if tensor.dtype == storage:
        return tensor
    return tensor.view(storage)


def from_storage(result: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    if result.dtype == scalar_type.torch_dtype:
        return result
    return result.view(scalar_type.torch_dtype)


def unsigned_to_int64(tensor: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    # Exact only below 64 bits.
    mask = (1 << scalar_type.bits) - 1
    return storage_view(tensor, scalar_type).to(torch.int64) & mask


def int64_to_unsigned(values: torch.Tensor, scalar_type: ScalarType) -> torch.Tensor:
    return from_storage(values.to(scalar_type.signed_storage), scalar_type)


def unsigned_values(tensor: torch.Tensor, scalar_type: ScalarType) -> List[int]:
    mask = (1 << scalar_type.bits) - 1
    return [
        value & mask
        for value in storage_view(tensor, scalar_type).reshape(-1).tolist()
    ]


def from_bits(values: Sequence[int], scalar_type: ScalarType) -> torch.Tensor:
    """Flat tensor of ``scalar_type`` holding the low bits of each value."""
    bits = scalar_type.bits
    mask = (1 << bits) - 1
    sign_bit = 1 << (bits - 1)
    signed = []
    for value in values:
        value &= mask
        signed.append(value - (1 << bits) if value & sign_bit else value)
    storage = torch.tensor(signed, dtype=scalar_type.signed_storage)
    return from_storage(storage, scalar_type)
