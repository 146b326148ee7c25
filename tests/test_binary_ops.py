import math
import operator

import pytest
import torch

import mhlo_runtime as mhlo
from mhlo_runtime import ComparisonDirection, UnsupportedElementTypeError

_WIDE_UNSIGNED = [torch.uint16, torch.uint32, torch.uint64]
_STORAGE = {torch.uint16: torch.int16, torch.uint32: torch.int32, torch.uint64: torch.int64}
_BITS = {torch.uint16: 16, torch.uint32: 32, torch.uint64: 64}


def _unsigned(values, dtype):
    bits = _BITS[dtype]
    signed = [value - (1 << bits) if value >> (bits - 1) else value for value in values]
    return torch.tensor(signed, dtype=_STORAGE[dtype]).view(dtype)


def _unsigned_list(tensor):
    mask = (1 << _BITS[tensor.dtype]) - 1
    return [value & mask for value in tensor.view(_STORAGE[tensor.dtype]).tolist()]


def _wide_operands(dtype):
    top = (1 << _BITS[dtype]) - 1
    half = 1 << (_BITS[dtype] - 1)
    return [7, 3, top, half, 0, half + 5], [2, 1, 2, 3, 5, half + 1]


def test_add_concrete():
    result = mhlo.add(torch.tensor([1, 2, 3]), torch.tensor([10, 20, 30]))
    assert result.tolist() == [11, 22, 33]


@pytest.mark.parametrize("shape", [(5,), (2, 3), (0,)])
@pytest.mark.parametrize(
    "op_name,reference",
    [
        ("add", torch.add),
        ("sub", torch.sub),
        ("mul", torch.mul),
        ("div", torch.div),
        ("pow", torch.pow),
    ],
)
def test_float_binary_matches_eager(op_name, reference, shape):
    a = torch.rand(shape, dtype=torch.float32) + 0.5
    b = torch.randn(shape, dtype=torch.float32)
    torch.testing.assert_close(getattr(mhlo, op_name)(a, b), reference(a, b))


def test_accepts_python_sequences():
    assert mhlo.sub([5, 7], [1, 2]).tolist() == [4, 5]


def test_scalar_operands_return_python_numbers():
    total = mhlo.add(2, 3)
    assert total == 5
    assert isinstance(total, int)
    assert mhlo.mul(1.5, 2.0) == 3.0


def test_integer_add_wraps():
    result = mhlo.add(
        torch.tensor([127], dtype=torch.int8), torch.tensor([1], dtype=torch.int8)
    )
    assert result.tolist() == [-128]


def test_integer_div_truncates_toward_zero():
    a = torch.tensor([7, -7, 7], dtype=torch.int32)
    b = torch.tensor([2, 2, -2], dtype=torch.int32)
    result = mhlo.div(a, b)
    assert result.dtype == torch.int32
    assert result.tolist() == [3, -3, -3]


def test_integer_div_by_zero_raises():
    with pytest.raises(ZeroDivisionError, match="integer div by zero"):
        mhlo.div(torch.tensor([1, 2]), torch.tensor([1, 0]))


def test_float_div_by_zero_follows_ieee():
    result = mhlo.div(torch.tensor([1.0, -1.0, 0.0]), torch.zeros(3))
    assert result[0].item() == math.inf
    assert result[1].item() == -math.inf
    assert math.isnan(result[2].item())


def test_rem_takes_sign_of_dividend():
    a = torch.tensor([7, -7], dtype=torch.int32)
    b = torch.tensor([3, 3], dtype=torch.int32)
    assert mhlo.rem(a, b).tolist() == [1, -1]
    torch.testing.assert_close(
        mhlo.rem(torch.tensor([5.5, -5.5]), torch.tensor([2.0, 2.0])),
        torch.tensor([1.5, -1.5]),
    )


def test_rem_integer_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        mhlo.rem(torch.tensor([1]), torch.tensor([0]))


def test_max_min_never_select_nan():
    a = torch.tensor([math.nan, 1.0, 3.0])
    b = torch.tensor([2.0, math.nan, 1.0])
    assert mhlo.max(a, b).tolist() == [2.0, 1.0, 3.0]
    assert mhlo.min(a, b).tolist() == [2.0, 1.0, 1.0]


def test_max_min_both_nan_is_nan():
    nan = torch.tensor([math.nan])
    assert math.isnan(mhlo.max(nan, nan).item())
    assert math.isnan(mhlo.min(nan, nan).item())


def test_max_min_integers_and_bools():
    a = torch.tensor([1, -5, 3], dtype=torch.int32)
    b = torch.tensor([2, -6, 3], dtype=torch.int32)
    assert mhlo.max(a, b).tolist() == [2, -5, 3]
    assert mhlo.min(a, b).tolist() == [1, -6, 3]
    t = torch.tensor([True, False, False])
    f = torch.tensor([False, False, True])
    assert mhlo.max(t, f).tolist() == [True, False, True]
    assert mhlo.min(t, f).tolist() == [False, False, False]


def test_max_rejects_complex():
    x = torch.tensor([1 + 1j])
    with pytest.raises(UnsupportedElementTypeError, match="max"):
        mhlo.max(x, x)


def test_pow_integer_negative_exponent_truncates():
    a = torch.tensor([2, 1, -1, 3], dtype=torch.int32)
    b = torch.tensor([-1, -2, -3, 2], dtype=torch.int32)
    result = mhlo.pow(a, b)
    assert result.dtype == torch.int32
    assert result.tolist() == [0, 1, -1, 9]


def test_pow_integer_non_negative_exponent_is_exact():
    a = torch.tensor([3, -2, 7], dtype=torch.int64)
    b = torch.tensor([4, 3, 0], dtype=torch.int64)
    assert mhlo.pow(a, b).tolist() == [81, -8, 1]


def test_sub_rejects_bool():
    x = torch.tensor([True])
    with pytest.raises(UnsupportedElementTypeError, match="sub"):
        mhlo.sub(x, x)


def test_logical_ops_on_bools():
    a = torch.tensor([True, True, False, False])
    b = torch.tensor([True, False, True, False])
    assert mhlo.and_(a, b).tolist() == [True, False, False, False]
    assert mhlo.or_(a, b).tolist() == [True, True, True, False]
    assert mhlo.xor(a, b).tolist() == [False, True, True, False]


def test_logical_ops_on_integers_are_bitwise():
    a = torch.tensor([0b1100], dtype=torch.int32)
    b = torch.tensor([0b1010], dtype=torch.int32)
    assert mhlo.and_(a, b).tolist() == [0b1000]
    assert mhlo.or_(a, b).tolist() == [0b1110]
    assert mhlo.xor(a, b).tolist() == [0b0110]


@pytest.mark.parametrize("op_name", ["and_", "or_", "xor"])
def test_logical_ops_reject_float(op_name):
    x = torch.tensor([1.0])
    with pytest.raises(UnsupportedElementTypeError):
        getattr(mhlo, op_name)(x, x)


@pytest.mark.parametrize("dtype", _WIDE_UNSIGNED)
@pytest.mark.parametrize(
    "op_name,reference",
    [
        ("add", operator.add),
        ("sub", operator.sub),
        ("mul", operator.mul),
        ("div", operator.floordiv),
        ("rem", operator.mod),
        ("max", max),
        ("min", min),
        ("pow", lambda x, y: pow(x, y, 1 << 64)),
        ("and_", operator.and_),
        ("or_", operator.or_),
        ("xor", operator.xor),
    ],
)
def test_wide_unsigned_binary_ops(op_name, reference, dtype):
    xs, ys = _wide_operands(dtype)
    mask = (1 << _BITS[dtype]) - 1
    result = getattr(mhlo, op_name)(_unsigned(xs, dtype), _unsigned(ys, dtype))
    assert result.dtype == dtype
    assert _unsigned_list(result) == [reference(x, y) & mask for x, y in zip(xs, ys)]


@pytest.mark.parametrize("dtype", _WIDE_UNSIGNED)
@pytest.mark.parametrize(
    "direction,reference",
    [
        (ComparisonDirection.EQ, operator.eq),
        (ComparisonDirection.NE, operator.ne),
        (ComparisonDirection.LT, operator.lt),
        (ComparisonDirection.LE, operator.le),
        (ComparisonDirection.GT, operator.gt),
        (ComparisonDirection.GE, operator.ge),
    ],
)
def test_wide_unsigned_compare(direction, reference, dtype):
    xs, ys = _wide_operands(dtype)
    result = mhlo.compare(_unsigned(xs, dtype), _unsigned(ys, dtype), direction)
    assert result.tolist() == [reference(x, y) for x, y in zip(xs, ys)]


@pytest.mark.parametrize("dtype", _WIDE_UNSIGNED)
def test_wide_unsigned_with_python_operand(dtype):
    top = (1 << _BITS[dtype]) - 1
    result = mhlo.add(_unsigned([1, top], dtype), 2)
    assert _unsigned_list(result) == [3, 1]


@pytest.mark.parametrize("op_name", ["div", "rem"])
@pytest.mark.parametrize("dtype", _WIDE_UNSIGNED)
def test_wide_unsigned_division_by_zero(op_name, dtype):
    with pytest.raises(ZeroDivisionError):
        getattr(mhlo, op_name)(_unsigned([4, 5], dtype), _unsigned([1, 0], dtype))
