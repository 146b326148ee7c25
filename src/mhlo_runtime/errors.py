from __future__ import annotations


class RuntimeBackendError(RuntimeError):
    pass


class UnsupportedElementTypeError(RuntimeBackendError):
    def __init__(self, op_name: str, element_type: object) -> None:
        super().__init__(f"{op_name} does not support element type {element_type}")
        self.op_name = op_name
        self.element_type = element_type
