from __future__ import annotations

import torch

from mhlo_runtime.tensors import (
    ShapeLike,
    TensorLike,
    as_tensor,
    binary_operands,
    element_count,
    flat,
    is_scalar,
    restore,
)


def broadcast_in_dim(x: TensorLike, n: ShapeLike) -> torch.Tensor:
    """Concatenate ``n`` copies of ``x``.

    ``n`` may also be a shape, in which case the product of its dimensions
    is the number of copies. Only flat repetition is modeled; there is no
    per-dimension stride replication.
    """
    count = element_count(n)
    if count < 0:
        raise ValueError(f"broadcast_in_dim expects a non-negative count, got {count}")
    return flat(x).repeat(count)


def concatenate(x: TensorLike, y: TensorLike, *rest: TensorLike) -> torch.Tensor:
    return torch.cat([flat(operand) for operand in (x, y, *rest)])


def reshape(x: TensorLike) -> torch.Tensor:
    # Shapes are not tracked, so reshaping is a copy.
    return as_tensor(x).clone()


def select(mask: TensorLike, x: TensorLike, y: TensorLike) -> object:
    pred = as_tensor(mask, torch.bool)
    if pred.dtype != torch.bool:
        pred = pred.to(torch.bool)
    a, b, scalar = binary_operands(x, y)
    return restore(torch.where(pred, a, b), scalar and is_scalar(mask))


__all__ = ["broadcast_in_dim", "concatenate", "reshape", "select"]
