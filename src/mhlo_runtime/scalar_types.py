from __future__ import annotations

from enum import Enum
from typing import Dict

import torch

from mhlo_runtime.errors import RuntimeBackendError


class ScalarType(str, Enum):
    def __new__(
        cls,
        suffix: str,
        torch_dtype: torch.dtype,
        bits: int,
        is_float: bool = False,
        is_signed: bool = False,
        is_complex: bool = False,
        is_bool: bool = False,
    ) -> "ScalarType":
        obj = str.__new__(cls, suffix)
        obj._value_ = suffix
        obj.suffix = suffix
        obj.torch_dtype = torch_dtype
        obj.bits = bits
        obj.is_float = is_float
        obj.is_signed = is_signed
        obj.is_complex = is_complex
        obj.is_bool = is_bool
        return obj

    F16 = ("f16", torch.float16, 16, True, True)
    BF16 = ("bf16", torch.bfloat16, 16, True, True)
    F32 = ("f32", torch.float32, 32, True, True)
    F64 = ("f64", torch.float64, 64, True, True)
    I8 = ("i8", torch.int8, 8, False, True)
    I16 = ("i16", torch.int16, 16, False, True)
    I32 = ("i32", torch.int32, 32, False, True)
    I64 = ("i64", torch.int64, 64, False, True)
    U8 = ("u8", torch.uint8, 8)
    U16 = ("u16", torch.uint16, 16)
    U32 = ("u32", torch.uint32, 32)
    U64 = ("u64", torch.uint64, 64)
    BOOL = ("bool", torch.bool, 8, False, False, False, True)
    C64 = ("c64", torch.complex64, 64, False, True, True)
    C128 = ("c128", torch.complex128, 128, False, True, True)

    @property
    def is_integer(self) -> bool:
        return not (self.is_float or self.is_complex or self.is_bool)

    @property
    def signed_storage(self) -> torch.dtype:
        """Signed integer dtype with the same width, used for bit-level work."""
        try:
            return _SIGNED_BY_BITS[self.bits]
        except KeyError as exc:
            raise RuntimeBackendError(
                f"no signed integer type with {self.bits} bits for {self.suffix}"
            ) from exc

    @property
    def is_wide_unsigned(self) -> bool:
        """Unsigned types torch stores but has no arithmetic kernels for."""
        return self.is_integer and not self.is_signed and self.bits > 8

    @classmethod
    def from_dtype(cls, dtype: object) -> "ScalarType":
        if isinstance(dtype, ScalarType):
            return dtype
        if isinstance(dtype, torch.dtype):
            try:
                return _BY_TORCH_DTYPE[dtype]
            except KeyError as exc:
                raise RuntimeBackendError(
                    f"unsupported element type: {dtype}"
                ) from exc
        if isinstance(dtype, str):
            normalized = dtype.lower()
            if normalized.startswith("torch."):
                normalized = normalized[len("torch.") :]
            normalized = _ALIASES.get(normalized, normalized)
            try:
                return cls(normalized)
            except ValueError as exc:
                raise RuntimeBackendError(
                    f"unsupported element type: {dtype}"
                ) from exc
        raise RuntimeBackendError(f"unsupported element type: {dtype!r}")

    @classmethod
    def of(cls, tensor: torch.Tensor) -> "ScalarType":
        return cls.from_dtype(tensor.dtype)


_BY_TORCH_DTYPE: Dict[torch.dtype, ScalarType] = {
    member.torch_dtype: member for member in ScalarType
}

_SIGNED_BY_BITS = {
    8: torch.int8,
    16: torch.int16,
    32: torch.int32,
    64: torch.int64,
}

# torch names and MLIR spellings (ui32, i1, complex<f32>) of the element types.
_ALIASES = {
    "float16": "f16",
    "half": "f16",
    "bfloat16": "bf16",
    "float32": "f32",
    "float": "f32",
    "float64": "f64",
    "double": "f64",
    "int8": "i8",
    "int16": "i16",
    "int32": "i32",
    "int64": "i64",
    "uint8": "u8",
    "uint16": "u16",
    "uint32": "u32",
    "uint64": "u64",
    "ui8": "u8",
    "ui16": "u16",
    "ui32": "u32",
    "ui64": "u64",
    "i1": "bool",
    "complex64": "c64",
    "complex128": "c128",
    "complex<f32>": "c64",
    "complex<f64>": "c128",
}
