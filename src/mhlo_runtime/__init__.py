from .binary import (
    ComparisonDirection,
    add,
    and_,
    compare,
    div,
    max,
    min,
    mul,
    or_,
    pow,
    rem,
    shift_left,
    shift_right_arithmetic,
    shift_right_logical,
    sub,
    xor,
)
from .bit_generator import RngAlgorithm, rng_bit_generator
from .errors import RuntimeBackendError, UnsupportedElementTypeError
from .ops_registry import call_op, get_op, supported_ops
from .rng import rng_normal, rng_uniform
from .scalar_types import ScalarType
from .structural import broadcast_in_dim, concatenate, reshape, select
from .unary import (
    abs,
    bitcast_convert,
    ceil,
    convert,
    cos,
    exp,
    floor,
    is_finite,
    log,
    neg,
    not_,
    sin,
    sqrt,
    tanh,
)

__all__ = [
    "ComparisonDirection",
    "RngAlgorithm",
    "RuntimeBackendError",
    "ScalarType",
    "UnsupportedElementTypeError",
    "abs",
    "add",
    "and_",
    "bitcast_convert",
    "broadcast_in_dim",
    "call_op",
    "ceil",
    "compare",
    "concatenate",
    "convert",
    "cos",
    "div",
    "exp",
    "floor",
    "get_op",
    "is_finite",
    "log",
    "max",
    "min",
    "mul",
    "neg",
    "not_",
    "or_",
    "pow",
    "rem",
    "reshape",
    "rng_bit_generator",
    "rng_normal",
    "rng_uniform",
    "select",
    "shift_left",
    "shift_right_arithmetic",
    "shift_right_logical",
    "sin",
    "sqrt",
    "sub",
    "supported_ops",
    "tanh",
    "xor",
]
