import pytest
import torch

import mhlo_runtime as mhlo
from mhlo_runtime import RngAlgorithm, RuntimeBackendError, UnsupportedElementTypeError
from mhlo_runtime.bit_generator import philox4x32, threefry2x32

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


def _u32(tensor):
    return [value & _MASK32 for value in tensor.view(torch.int32).tolist()]


def _u64(tensor):
    return [value & _MASK64 for value in tensor.view(torch.int64).tolist()]


def _raw(tensor):
    signed = {1: torch.int8, 2: torch.int16, 4: torch.int32, 8: torch.int64}
    return tensor.view(signed[tensor.element_size()]).tolist()


def _split(value):
    return value & _MASK32, value >> 32


@pytest.mark.parametrize(
    "key,counter,expected",
    [
        ((0, 0), (0, 0), (0x6B200159, 0x99BA4EFE)),
        (
            (_MASK32, _MASK32),
            (_MASK32, _MASK32),
            (0x1CB996FC, 0xBB002BE7),
        ),
        (
            (0x13198A2E, 0x03707344),
            (0x243F6A88, 0x85A308D3),
            (0xC4923A9C, 0x483DF7A0),
        ),
    ],
)
def test_threefry2x32_known_answers(key, counter, expected):
    assert threefry2x32(key, counter) == expected


@pytest.mark.parametrize(
    "key,counter,expected",
    [
        ((0, 0), (0, 0, 0, 0), (0x6627E8D5, 0xE169C58D, 0xBC57AC4C, 0x9B00DBD8)),
        (
            (_MASK32, _MASK32),
            (_MASK32, _MASK32, _MASK32, _MASK32),
            (0x408F276D, 0x41C83B0E, 0xA20BC7C6, 0x6D5451FD),
        ),
        (
            (0xA4093822, 0x299F31D0),
            (0x243F6A88, 0x85A308D3, 0x13198A2E, 0x03707344),
            (0xD16CFE09, 0x94FDCCEB, 0x5001E420, 0x24126EA1),
        ),
    ],
)
def test_philox4x32_known_answers(key, counter, expected):
    assert philox4x32(key, counter) == expected


@pytest.mark.parametrize("algorithm", list(RngAlgorithm))
def test_rng_bit_generator_is_deterministic(algorithm):
    state = [42, 0]
    first_state, first = mhlo.rng_bit_generator(state, [16], "u32", algorithm)
    second_state, second = mhlo.rng_bit_generator(state, [16], "u32", algorithm)
    assert first_state == second_state
    assert _raw(first) == _raw(second)
    assert state == [42, 0]


def test_rng_bit_generator_default_is_philox():
    default = mhlo.rng_bit_generator([7, 3], [10], "u64", RngAlgorithm.DEFAULT)
    philox = mhlo.rng_bit_generator([7, 3], [10], "u64", RngAlgorithm.PHILOX)
    assert default[0] == philox[0]
    assert _raw(default[1]) == _raw(philox[1])


def test_threefry_u64_values_and_state():
    key, counter = 0x0123456789ABCDEF, 5
    new_state, result = mhlo.rng_bit_generator(
        [key, counter], [4], torch.uint64, RngAlgorithm.THREE_FRY
    )
    assert new_state == [key, counter + 4]
    expected = []
    for index in range(4):
        low, high = threefry2x32(_split(key), _split(counter + index))
        expected.append(low | high << 32)
    assert _u64(result) == expected


def test_threefry_u32_layout():
    key, counter = 9, 100
    new_state, result = mhlo.rng_bit_generator(
        [key, counter], [5], "u32", RngAlgorithm.THREE_FRY
    )
    assert new_state == [key, counter + 3]
    blocks = [threefry2x32(_split(key), _split(counter + i)) for i in range(3)]
    expected = [block[0] for block in blocks] + [block[1] for block in blocks[:2]]
    assert _u32(result) == expected


def test_threefry_u8_keeps_low_bits():
    _, result = mhlo.rng_bit_generator([1, 2], [2], torch.uint8, "THREE_FRY")
    first, second = threefry2x32(_split(1), _split(2))
    assert result.tolist() == [first & 0xFF, second & 0xFF]


def test_philox_u32_values_and_state():
    key = 0x1111222233334444
    new_state, result = mhlo.rng_bit_generator([key, 0], [6], "u32", "PHILOX")
    assert new_state == [key, 2]
    words = list(philox4x32(_split(key), (0, 0, 0, 0)))
    words += list(philox4x32(_split(key), (1, 0, 0, 0)))
    assert _u32(result) == words[:6]


def test_philox_u64_joins_word_pairs():
    key = 77
    new_state, result = mhlo.rng_bit_generator([key, 4], [3], "u64", "PHILOX")
    assert new_state == [key, 6]
    words = list(philox4x32(_split(key), (4, 0, 0, 0)))
    words += list(philox4x32(_split(key), (5, 0, 0, 0)))
    expected = [words[i] | words[i + 1] << 32 for i in range(0, 6, 2)]
    assert _u64(result) == expected


@pytest.mark.parametrize(
    "algorithm,dtype,chunk",
    [
        (RngAlgorithm.THREE_FRY, "u64", 4),
        (RngAlgorithm.PHILOX, "u32", 4),
        (RngAlgorithm.PHILOX, "u64", 2),
    ],
)
def test_rng_bit_generator_continues_stream(algorithm, dtype, chunk):
    state, first = mhlo.rng_bit_generator([3, 0], [chunk], dtype, algorithm)
    _, second = mhlo.rng_bit_generator(state, [chunk], dtype, algorithm)
    _, whole = mhlo.rng_bit_generator([3, 0], [2 * chunk], dtype, algorithm)
    assert _raw(first) + _raw(second) == _raw(whole)


def test_philox_counter_carries_into_high_word():
    key = 5
    new_state, _ = mhlo.rng_bit_generator([key, _MASK64, 0], [4], "u32", "PHILOX")
    assert new_state == [key, 0, 1]


def test_philox_two_word_counter_wraps():
    key = 5
    new_state, _ = mhlo.rng_bit_generator([key, _MASK64], [4], "u32", "PHILOX")
    assert new_state == [key, 0]


def test_philox_two_word_counter_wraps_stream():
    state, first = mhlo.rng_bit_generator([1, _MASK64], [4], "u32", "PHILOX")
    _, second = mhlo.rng_bit_generator(state, [4], "u32", "PHILOX")
    _, whole = mhlo.rng_bit_generator([1, _MASK64], [8], "u32", "PHILOX")
    assert _raw(first) + _raw(second) == _raw(whole)
    expected = list(philox4x32(_split(1), (_MASK32, _MASK32, 0, 0)))
    expected += list(philox4x32(_split(1), (0, 0, 0, 0)))
    assert _u32(whole) == expected


def test_rng_bit_generator_accepts_tensor_state():
    from_tensor = mhlo.rng_bit_generator(torch.tensor([-1, 5]), [8], "u32")
    from_list = mhlo.rng_bit_generator([_MASK64, 5], [8], "u32")
    assert from_tensor[0] == from_list[0]
    assert _raw(from_tensor[1]) == _raw(from_list[1])


@pytest.mark.parametrize("dtype", [torch.float32, torch.float64, torch.int16, torch.int64])
def test_rng_bit_generator_output_types(dtype):
    new_state, result = mhlo.rng_bit_generator([1, 0], [2, 3], dtype)
    assert result.dtype == dtype
    assert result.shape == (6,)
    assert len(new_state) == 2


def test_rng_bit_generator_empty_shape_gives_one_value():
    new_state, result = mhlo.rng_bit_generator([1, 0], [], "u32", "THREE_FRY")
    assert result.shape == (1,)
    assert new_state == [1, 1]


@pytest.mark.parametrize(
    "state,algorithm",
    [([1, 2, 3], RngAlgorithm.THREE_FRY), ([1], RngAlgorithm.PHILOX), ([1, 2, 3, 4], "PHILOX")],
)
def test_rng_bit_generator_rejects_state_length(state, algorithm):
    with pytest.raises(RuntimeBackendError, match="state of"):
        mhlo.rng_bit_generator(state, [4], "u32", algorithm)


@pytest.mark.parametrize("dtype", [torch.bool, torch.complex64])
def test_rng_bit_generator_rejects_element_types(dtype):
    with pytest.raises(UnsupportedElementTypeError, match="rng_bit_generator"):
        mhlo.rng_bit_generator([1, 0], [4], dtype)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("rng_threefry", RngAlgorithm.THREE_FRY),
        ("THREE_FRY", RngAlgorithm.THREE_FRY),
        ("philox", RngAlgorithm.PHILOX),
        ("RNG_DEFAULT", RngAlgorithm.DEFAULT),
        (1, RngAlgorithm.THREE_FRY),
        (RngAlgorithm.PHILOX, RngAlgorithm.PHILOX),
    ],
)
def test_rng_algorithm_parse(value, expected):
    assert RngAlgorithm.parse(value) is expected


@pytest.mark.parametrize("value", ["mersenne", 7])
def test_rng_algorithm_parse_rejects_unknown(value):
    with pytest.raises(RuntimeBackendError, match="unknown rng algorithm"):
        RngAlgorithm.parse(value)
