from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

import torch

from mhlo_runtime.errors import UnsupportedElementTypeError
from mhlo_runtime.scalar_types import ScalarType


class OpKind(str, Enum):
    UNARY = "unary"
    BINARY = "binary"
    COMPARE = "compare"
    STRUCTURAL = "structural"
    RNG = "rng"


@dataclass(frozen=True)
class ElementSupport:
    supports_float: bool = True
    supports_signed_int: bool = True
    supports_unsigned_int: bool = True
    supports_bool: bool = True
    supports_complex: bool = True

    def supports(self, scalar_type: ScalarType) -> bool:
        if scalar_type.is_float:
            return self.supports_float
        if scalar_type.is_complex:
            return self.supports_complex
        if scalar_type.is_bool:
            return self.supports_bool
        if scalar_type.is_signed:
            return self.supports_signed_int
        return self.supports_unsigned_int

    def check_type(self, op_name: str, scalar_type: ScalarType) -> ScalarType:
        if not self.supports(scalar_type):
            raise UnsupportedElementTypeError(op_name, scalar_type.suffix)
        return scalar_type

    def check(self, op_name: str, tensor: torch.Tensor) -> ScalarType:
        return self.check_type(op_name, ScalarType.of(tensor))


ANY_ELEMENT = ElementSupport()
NUMERIC = ElementSupport(supports_bool=False)
REAL_NUMERIC = ElementSupport(supports_bool=False, supports_complex=False)
REAL_OR_BOOL = ElementSupport(supports_complex=False)
INTEGER_OR_BOOL = ElementSupport(supports_float=False, supports_complex=False)
INTEGER = ElementSupport(
    supports_float=False, supports_bool=False, supports_complex=False
)
FLOATING = ElementSupport(
    supports_signed_int=False,
    supports_unsigned_int=False,
    supports_bool=False,
    supports_complex=False,
)


@dataclass(frozen=True)
class _OpSpec:
    name: str
    kind: OpKind
    impl: Callable[..., object] | None
    element_support: ElementSupport = ANY_ELEMENT
    mhlo_targets: frozenset = field(default_factory=frozenset)


def _unary_spec(
    name: str,
    impl: Callable[..., object] | None,
    targets: Iterable[str],
    element_support: ElementSupport = NUMERIC,
) -> _OpSpec:
    return _OpSpec(
        name=name,
        kind=OpKind.UNARY,
        impl=impl,
        element_support=element_support,
        mhlo_targets=frozenset(targets),
    )


def _binary_spec(
    name: str,
    impl: Callable[..., object] | None,
    targets: Iterable[str],
    element_support: ElementSupport = NUMERIC,
) -> _OpSpec:
    return _OpSpec(
        name=name,
        kind=OpKind.BINARY,
        impl=impl,
        element_support=element_support,
        mhlo_targets=frozenset(targets),
    )
