#!/usr/bin/env python
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from mhlo_runtime.ops_registry import supported_ops  # noqa: E402
from mhlo_runtime.specs import ElementSupport, OpKind, _OpSpec  # noqa: E402

_ELEMENT_LABELS = (
    ("supports_float", "float"),
    ("supports_signed_int", "signed"),
    ("supports_unsigned_int", "unsigned"),
    ("supports_bool", "bool"),
    ("supports_complex", "complex"),
)


def _format_element_support(element_support: ElementSupport) -> str:
    labels = [
        label
        for attribute, label in _ELEMENT_LABELS
        if getattr(element_support, attribute)
    ]
    return ", ".join(labels) if labels else "—"


def _format_targets(spec: _OpSpec) -> str:
    return " ".join(f"`{target}`" for target in sorted(spec.mhlo_targets))


def _summarize_kinds(specs: Iterable[_OpSpec]) -> dict[OpKind, int]:
    counts = {kind: 0 for kind in OpKind}
    for spec in specs:
        counts[spec.kind] += 1
    return counts


def main() -> None:
    specs = supported_ops()

    print("# Supported MHLO ops (runtime)")
    print()
    print("| op | kind | targets | element types |")
    print("| --- | --- | --- | --- |")
    for spec in specs:
        print(
            f"| `{spec.name}` | {spec.kind.value} | {_format_targets(spec)} "
            f"| {_format_element_support(spec.element_support)} |"
        )

    print()
    print("## Summary")
    print(f"- total ops: {len(specs)}")
    for kind, count in _summarize_kinds(specs).items():
        print(f"- {kind.value} ops: {count}")


if __name__ == "__main__":
    main()
