from __future__ import annotations

import logging
from typing import Callable, Dict, List

import torch

from mhlo_runtime import binary, bit_generator, rng, structural, unary
from mhlo_runtime.errors import RuntimeBackendError
from mhlo_runtime.specs import (
    ANY_ELEMENT,
    FLOATING,
    INTEGER,
    INTEGER_OR_BOOL,
    NUMERIC,
    REAL_NUMERIC,
    REAL_OR_BOOL,
    ElementSupport,
    OpKind,
    _OpSpec,
    _binary_spec,
    _unary_spec,
)
from mhlo_runtime.tensors import as_tensor

logger = logging.getLogger(__name__)

_DIALECTS = ("mhlo", "stablehlo")
_ELEMENTWISE_KINDS = {OpKind.UNARY, OpKind.BINARY, OpKind.COMPARE}


def _dialect_targets(*op_names: str) -> List[str]:
    return [f"{dialect}.{op_name}" for op_name in op_names for dialect in _DIALECTS]


class _OpBuilder:
    def __init__(
        self,
        registry: "_OpRegistry",
        name: str,
        kind: OpKind,
        element_support: ElementSupport,
    ) -> None:
        self._registry = registry
        self._name = name
        self._kind = kind
        self._element_support = element_support
        self._targets: list[str] = []
        self._impl: Callable[..., object] | None = None

    def targets(self, *op_names: str) -> "_OpBuilder":
        self._targets = _dialect_targets(*op_names)
        return self

    def impl(self, fn: Callable[..., object]) -> "_OpBuilder":
        self._impl = fn
        return self

    def build(self) -> _OpSpec:
        if self._impl is None:
            raise RuntimeBackendError(
                f"No implementation registered for op '{self._name}'."
            )
        if not self._targets:
            raise RuntimeBackendError(f"No targets registered for op '{self._name}'.")
        if self._kind is OpKind.UNARY:
            spec = _unary_spec(
                self._name, self._impl, self._targets, self._element_support
            )
        elif self._kind is OpKind.BINARY:
            spec = _binary_spec(
                self._name, self._impl, self._targets, self._element_support
            )
        else:
            spec = _OpSpec(
                name=self._name,
                kind=self._kind,
                impl=self._impl,
                element_support=self._element_support,
                mhlo_targets=frozenset(self._targets),
            )
        self._registry._add(spec)
        return spec


class _OpRegistry:
    def __init__(self) -> None:
        self._specs: dict[str, _OpSpec] = {}

    def register_unary(
        self, name: str, element_support: ElementSupport = NUMERIC
    ) -> _OpBuilder:
        return _OpBuilder(self, name, OpKind.UNARY, element_support)

    def register_binary(
        self, name: str, element_support: ElementSupport = NUMERIC
    ) -> _OpBuilder:
        return _OpBuilder(self, name, OpKind.BINARY, element_support)

    def register_op(
        self,
        name: str,
        kind: OpKind,
        element_support: ElementSupport = ANY_ELEMENT,
    ) -> _OpBuilder:
        return _OpBuilder(self, name, kind, element_support)

    def _add(self, spec: _OpSpec) -> None:
        if spec.name in self._specs:
            raise RuntimeBackendError(f"Duplicate op spec registered: {spec.name}")
        self._specs[spec.name] = spec

    def build(self) -> dict[str, _OpSpec]:
        _validate_registry(self._specs)
        logger.debug("built op registry with %d ops", len(self._specs))
        return dict(self._specs)


def _validate_registry(specs: dict[str, _OpSpec]) -> None:
    seen_targets: dict[str, str] = {}
    for spec in specs.values():
        if spec.impl is None:
            raise RuntimeBackendError(
                f"No implementation registered for op '{spec.name}'."
            )
        for target in spec.mhlo_targets:
            if target in seen_targets and seen_targets[target] != spec.name:
                raise RuntimeBackendError(
                    "Duplicate target registered for ops "
                    f"'{seen_targets[target]}' and '{spec.name}'."
                )
            seen_targets[target] = spec.name


_REGISTRY = _OpRegistry()

# Every operation the lowering pass may emit is registered here; building the
# registry at import fails if one lacks an implementation.
_REGISTRY.register_unary("abs").targets("abs").impl(unary.abs).build()
_REGISTRY.register_unary("bitcast_convert", ANY_ELEMENT).targets(
    "bitcast_convert"
).impl(unary.bitcast_convert).build()
_REGISTRY.register_unary("convert", ANY_ELEMENT).targets("convert").impl(
    unary.convert
).build()
_REGISTRY.register_unary("cos").targets("cosine").impl(unary.cos).build()
_REGISTRY.register_unary("sin").targets("sine").impl(unary.sin).build()
_REGISTRY.register_unary("sqrt").targets("sqrt").impl(unary.sqrt).build()
_REGISTRY.register_unary("tanh").targets("tanh").impl(unary.tanh).build()
_REGISTRY.register_unary("exp").targets("exponential").impl(unary.exp).build()
_REGISTRY.register_unary("log").targets("log").impl(unary.log).build()
_REGISTRY.register_unary("neg").targets("negate").impl(unary.neg).build()
_REGISTRY.register_unary("is_finite", ANY_ELEMENT).targets("is_finite").impl(
    unary.is_finite
).build()
_REGISTRY.register_unary("floor", REAL_NUMERIC).targets("floor").impl(
    unary.floor
).build()
_REGISTRY.register_unary("ceil", REAL_NUMERIC).targets("ceil").impl(
    unary.ceil
).build()
_REGISTRY.register_unary("not", INTEGER_OR_BOOL).targets("not").impl(
    unary.not_
).build()

_REGISTRY.register_binary("add", ANY_ELEMENT).targets("add").impl(binary.add).build()
_REGISTRY.register_binary("sub").targets("subtract").impl(binary.sub).build()
_REGISTRY.register_binary("mul", ANY_ELEMENT).targets("multiply").impl(
    binary.mul
).build()
_REGISTRY.register_binary("div").targets("divide").impl(binary.div).build()
_REGISTRY.register_binary("rem", REAL_NUMERIC).targets("remainder").impl(
    binary.rem
).build()
_REGISTRY.register_binary("max", REAL_OR_BOOL).targets("maximum").impl(
    binary.max
).build()
_REGISTRY.register_binary("min", REAL_OR_BOOL).targets("minimum").impl(
    binary.min
).build()
_REGISTRY.register_binary("pow").targets("power").impl(binary.pow).build()
_REGISTRY.register_binary("and", INTEGER_OR_BOOL).targets("and").impl(
    binary.and_
).build()
_REGISTRY.register_binary("or", INTEGER_OR_BOOL).targets("or").impl(
    binary.or_
).build()
_REGISTRY.register_binary("xor", INTEGER_OR_BOOL).targets("xor").impl(
    binary.xor
).build()
_REGISTRY.register_binary("shift_left", INTEGER).targets("shift_left").impl(
    binary.shift_left
).build()
_REGISTRY.register_binary("shift_right_logical", INTEGER).targets(
    "shift_right_logical"
).impl(binary.shift_right_logical).build()
_REGISTRY.register_binary("shift_right_arithmetic", INTEGER).targets(
    "shift_right_arithmetic"
).impl(binary.shift_right_arithmetic).build()
_REGISTRY.register_op("compare", OpKind.COMPARE).targets("compare").impl(
    binary.compare
).build()

_REGISTRY.register_op("broadcast_in_dim", OpKind.STRUCTURAL).targets(
    "broadcast_in_dim"
).impl(structural.broadcast_in_dim).build()
_REGISTRY.register_op("concatenate", OpKind.STRUCTURAL).targets(
    "concatenate"
).impl(structural.concatenate).build()
_REGISTRY.register_op("reshape", OpKind.STRUCTURAL).targets("reshape").impl(
    structural.reshape
).build()
_REGISTRY.register_op("select", OpKind.STRUCTURAL).targets("select").impl(
    structural.select
).build()

_REGISTRY.register_op("rng_uniform", OpKind.RNG, REAL_NUMERIC).targets(
    "rng_uniform"
).impl(rng.rng_uniform).build()
_REGISTRY.register_op("rng_normal", OpKind.RNG, FLOATING).targets(
    "rng_normal"
).impl(rng.rng_normal).build()
_REGISTRY.register_op("rng_bit_generator", OpKind.RNG, REAL_NUMERIC).targets(
    "rng_bit_generator"
).impl(bit_generator.rng_bit_generator).build()

SUPPORTED_OPS = _REGISTRY.build()

_TARGET_INDEX: Dict[str, _OpSpec] = {
    target: spec for spec in SUPPORTED_OPS.values() for target in spec.mhlo_targets
}


def get_op(name: str) -> _OpSpec:
    """Resolve a runtime function name or a dialect op name to its spec."""

    spec = SUPPORTED_OPS.get(name) or _TARGET_INDEX.get(name)
    if spec is None:
        spec = _TARGET_INDEX.get(f"{_DIALECTS[0]}.{name}")
    if spec is None:
        raise RuntimeBackendError(f"unknown op: {name}")
    return spec


def call_op(name: str, *args: object, **kwargs: object) -> object:
    spec = get_op(name)
    if spec.kind in _ELEMENTWISE_KINDS and args:
        operand = args[0]
        if not isinstance(operand, torch.Tensor):
            operand = as_tensor(operand)
        spec.element_support.check(spec.name, operand)
    return spec.impl(*args, **kwargs)


def supported_ops() -> List[_OpSpec]:
    return sorted(SUPPORTED_OPS.values(), key=lambda spec: spec.name)


__all__ = ["SUPPORTED_OPS", "call_op", "get_op", "supported_ops"]
