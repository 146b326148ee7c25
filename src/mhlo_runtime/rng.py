from __future__ import annotations

import logging
import numbers
from typing import List

import torch

from mhlo_runtime.config import load_config
from mhlo_runtime.errors import RuntimeBackendError
from mhlo_runtime.scalar_types import ScalarType
from mhlo_runtime.specs import FLOATING, REAL_NUMERIC
from mhlo_runtime.tensors import ShapeLike, element_count, from_bits, int64_to_unsigned

logger = logging.getLogger(__name__)

_U64_RANGE = 1 << 64


def make_generator(seed: int | None = None) -> torch.Generator:
    """Build a fresh, unshared generator for one random operator call.

    The seed is ``seed`` if given, otherwise ``MHLO_RUNTIME_SEED`` if set,
    otherwise a non-deterministic value drawn by torch from OS entropy.
    """

    generator = torch.Generator()
    if seed is None:
        seed = load_config().default_seed
    if seed is None:
        drawn = generator.seed()
        logger.debug("rng generator seeded from entropy (seed=%d)", drawn)
        return generator
    generator.manual_seed(seed)
    logger.debug("rng generator seeded with fixed seed %d", seed)
    return generator


def _bound_value(bound: object) -> numbers.Number:
    if isinstance(bound, torch.Tensor):
        if bound.numel() != 1:
            raise RuntimeBackendError("rng bounds must be scalars")
        return bound.item()
    if isinstance(bound, numbers.Number):
        return bound
    raise RuntimeBackendError(f"rng bounds must be scalars, got {bound!r}")


def _resolve_element_type(first: object, second: object, dtype: object) -> ScalarType:
    if dtype is not None:
        return ScalarType.from_dtype(dtype)
    for bound in (first, second):
        if isinstance(bound, torch.Tensor):
            return ScalarType.of(bound)
    if any(isinstance(bound, bool) for bound in (first, second)):
        return ScalarType.BOOL
    if all(isinstance(bound, numbers.Integral) for bound in (first, second)):
        return ScalarType.I64
    if any(isinstance(bound, complex) for bound in (first, second)):
        return ScalarType.C128
    return ScalarType.from_dtype(torch.get_default_dtype())


def _draw_u64(low: int, high: int, n: int, generator: torch.Generator) -> List[int]:
    # Each value comes from two 32-bit draws; words at or above the largest
    # multiple of the range are drawn again so every value is equally likely.
    if low < 0 or high > _U64_RANGE or low >= high:
        raise RuntimeBackendError(
            f"rng_uniform expects 0 <= low < high <= 2**64 for u64, got [{low}, {high})"
        )
    span = high - low
    limit = _U64_RANGE - _U64_RANGE % span
    values: List[int] = []
    while len(values) < n:
        halves = torch.randint(
            0, 1 << 32, (2, n - len(values)), generator=generator, dtype=torch.int64
        )
        for low_word, high_word in zip(*halves.tolist()):
            word = low_word | (high_word << 32)
            if word < limit:
                values.append(low + word % span)
    return values


def rng_uniform(
    low: object,
    high: object,
    shape: ShapeLike,
    *,
    dtype: object = None,
    seed: int | None = None,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    """Fill a flat tensor of ``prod(shape)`` elements uniformly from [low, high).

    The upper bound is exclusive for integer types. For floating types a draw
    may round up to ``high`` in narrow formats.
    """

    scalar_type = REAL_NUMERIC.check_type(
        "rng_uniform", _resolve_element_type(low, high, dtype)
    )
    n = element_count(shape)
    if generator is None:
        generator = make_generator(seed)
    lo = _bound_value(low)
    hi = _bound_value(high)
    if scalar_type is ScalarType.U64:
        return from_bits(_draw_u64(int(lo), int(hi), n, generator), scalar_type)
    if scalar_type.is_wide_unsigned:
        values = torch.randint(
            int(lo), int(hi), (n,), generator=generator, dtype=torch.int64
        )
        return int64_to_unsigned(values, scalar_type)
    if scalar_type.is_integer:
        return torch.randint(
            int(lo), int(hi), (n,), generator=generator, dtype=scalar_type.torch_dtype
        )
    values = torch.empty(n, dtype=scalar_type.torch_dtype)
    return values.uniform_(float(lo), float(hi), generator=generator)


def rng_normal(
    mu: object,
    sigma: object,
    shape: ShapeLike,
    *,
    dtype: object = None,
    seed: int | None = None,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    scalar_type = FLOATING.check_type(
        "rng_normal", _resolve_element_type(mu, sigma, dtype)
    )
    n = element_count(shape)
    if generator is None:
        generator = make_generator(seed)
    values = torch.empty(n, dtype=scalar_type.torch_dtype)
    return values.normal_(
        float(_bound_value(mu)), float(_bound_value(sigma)), generator=generator
    )


__all__ = ["make_generator", "rng_normal", "rng_uniform"]
