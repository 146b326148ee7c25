from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Sequence, Tuple

import torch

from mhlo_runtime.errors import RuntimeBackendError
from mhlo_runtime.scalar_types import ScalarType
from mhlo_runtime.specs import REAL_NUMERIC
from mhlo_runtime.tensors import ShapeLike, element_count, from_bits

logger = logging.getLogger(__name__)

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_MASK128 = (1 << 128) - 1

_THREEFRY_ROTATIONS = (13, 15, 26, 6, 17, 29, 16, 24)
_THREEFRY_PARITY = 0x1BD11BDA

_PHILOX_MULTIPLIERS = (0xD2511F53, 0xCD9E8D57)
_PHILOX_KEY_BUMPS = (0x9E3779B9, 0xBB67AE85)
_PHILOX_ROUNDS = 10


class RngAlgorithm(int, Enum):
    DEFAULT = 0
    THREE_FRY = 1
    PHILOX = 2

    @classmethod
    def parse(cls, value: object) -> "RngAlgorithm":
        if isinstance(value, RngAlgorithm):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper().replace("RNG_", "")
            normalized = {"THREEFRY": "THREE_FRY"}.get(normalized, normalized)
            try:
                return cls[normalized]
            except KeyError as exc:
                raise RuntimeBackendError(f"unknown rng algorithm: {value}") from exc
        try:
            return cls(value)
        except ValueError as exc:
            raise RuntimeBackendError(f"unknown rng algorithm: {value!r}") from exc


def _rotl32(value: int, distance: int) -> int:
    return ((value << distance) | (value >> (32 - distance))) & _MASK32


def threefry2x32(key: Sequence[int], counter: Sequence[int]) -> Tuple[int, int]:
    """Threefry-2x32 with 20 rounds on one 64-bit block."""
    schedule = (key[0], key[1], key[0] ^ key[1] ^ _THREEFRY_PARITY)
    x0 = (counter[0] + schedule[0]) & _MASK32
    x1 = (counter[1] + schedule[1]) & _MASK32
    for injection in range(5):
        rotations = _THREEFRY_ROTATIONS[:4] if injection % 2 == 0 else _THREEFRY_ROTATIONS[4:]
        for rotation in rotations:
            x0 = (x0 + x1) & _MASK32
            x1 = _rotl32(x1, rotation) ^ x0
        x0 = (x0 + schedule[(injection + 1) % 3]) & _MASK32
        x1 = (x1 + schedule[(injection + 2) % 3] + injection + 1) & _MASK32
    return x0, x1


def philox4x32(
    key: Sequence[int], counter: Sequence[int]
) -> Tuple[int, int, int, int]:
    """Philox-4x32 with 10 rounds on one 128-bit block."""
    k0, k1 = key[0], key[1]
    c0, c1, c2, c3 = counter
    for _ in range(_PHILOX_ROUNDS):
        product0 = _PHILOX_MULTIPLIERS[0] * c0
        product1 = _PHILOX_MULTIPLIERS[1] * c2
        c0, c1, c2, c3 = (
            ((product1 >> 32) ^ c1 ^ k0) & _MASK32,
            product1 & _MASK32,
            ((product0 >> 32) ^ c3 ^ k1) & _MASK32,
            product0 & _MASK32,
        )
        k0 = (k0 + _PHILOX_KEY_BUMPS[0]) & _MASK32
        k1 = (k1 + _PHILOX_KEY_BUMPS[1]) & _MASK32
    return c0, c1, c2, c3


def _split_u64(value: int) -> Tuple[int, int]:
    return value & _MASK32, (value >> 32) & _MASK32


def _join_u32(low: int, high: int) -> int:
    return low | (high << 32)


def _state_words(state: object) -> List[int]:
    values: Iterable[object]
    if isinstance(state, torch.Tensor):
        values = state.reshape(-1).tolist()
    else:
        values = list(state)
    return [int(value) & _MASK64 for value in values]


def _threefry_bits(
    key: int, counter: int, n: int, wide: bool
) -> Tuple[List[int], int]:
    key_words = _split_u64(key)
    if wide:
        values = []
        for index in range(n):
            low, high = threefry2x32(key_words, _split_u64((counter + index) & _MASK64))
            values.append(_join_u32(low, high))
        return values, (counter + n) & _MASK64
    # Narrow outputs: every block yields two words, the first words of all
    # blocks are laid out before the second words.
    blocks = (n + 1) // 2
    firsts = []
    seconds = []
    for index in range(blocks):
        first, second = threefry2x32(
            key_words, _split_u64((counter + index) & _MASK64)
        )
        firsts.append(first)
        seconds.append(second)
    return firsts + seconds[: n - blocks], (counter + blocks) & _MASK64


def _philox_bits(
    key: int, counter: int, n: int, wide: bool, counter_mask: int = _MASK128
) -> Tuple[List[int], int]:
    key_words = _split_u64(key)
    words_needed = 2 * n if wide else n
    blocks = (words_needed + 3) // 4
    words: List[int] = []
    for index in range(blocks):
        block = (counter + index) & counter_mask
        words.extend(
            philox4x32(
                key_words,
                (
                    block & _MASK32,
                    (block >> 32) & _MASK32,
                    (block >> 64) & _MASK32,
                    (block >> 96) & _MASK32,
                ),
            )
        )
    if wide:
        values = [
            _join_u32(words[index], words[index + 1])
            for index in range(0, len(words), 2)
        ]
    else:
        values = words
    return values[:n], (counter + blocks) & counter_mask


def rng_bit_generator(
    state: object,
    shape: ShapeLike,
    dtype: object = ScalarType.U64,
    algorithm: object = RngAlgorithm.DEFAULT,
) -> Tuple[List[int], torch.Tensor]:
    """Produce ``prod(shape)`` random bit patterns of ``dtype`` from ``state``.

    ``state`` is ``[key, counter]`` for Threefry and ``[key, counter_lo]`` or
    ``[key, counter_lo, counter_hi]`` for Philox, each word an unsigned
    64-bit integer. The same state and algorithm always give the same
    values; the returned state continues the stream.
    """

    scalar_type = REAL_NUMERIC.check_type(
        "rng_bit_generator", ScalarType.from_dtype(dtype)
    )
    algorithm = RngAlgorithm.parse(algorithm)
    words = _state_words(state)
    n = element_count(shape)
    wide = scalar_type.bits == 64
    if algorithm is RngAlgorithm.THREE_FRY:
        if len(words) != 2:
            raise RuntimeBackendError(
                f"rng_bit_generator THREE_FRY expects a state of 2 words, got {len(words)}"
            )
        key, counter = words
        values, new_counter = _threefry_bits(key, counter, n, wide)
        new_state = [key, new_counter]
    else:
        if len(words) not in (2, 3):
            raise RuntimeBackendError(
                f"rng_bit_generator PHILOX expects a state of 2 or 3 words, got {len(words)}"
            )
        key = words[0]
        # A two-word state carries a 64-bit counter that wraps on its own.
        if len(words) == 3:
            counter = words[1] | (words[2] << 64)
            counter_mask = _MASK128
        else:
            counter = words[1]
            counter_mask = _MASK64
        values, new_counter = _philox_bits(key, counter, n, wide, counter_mask)
        new_state = [key, new_counter & _MASK64]
        if len(words) == 3:
            new_state.append(new_counter >> 64)
    logger.debug(
        "rng_bit_generator %s produced %d %s values", algorithm.name, n, scalar_type.suffix
    )
    return new_state, from_bits(values, scalar_type)


__all__ = ["RngAlgorithm", "philox4x32", "rng_bit_generator", "threefry2x32"]
