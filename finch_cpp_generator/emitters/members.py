#!/usr/bin/env python3
"""
Member synthesis for finch C++ wrappers.

For each IR operation kind this module emits a declaration (for the class body
in `<pkg>.h`) and an out-of-class definition (for `<pkg>-impl.h`). Every
argument goes through `TypeMapper.convert_arg` and every result through
`TypeMapper.convert_ret`.

Ownership rules encoded here:
- Non-static members start with a validity guard that aborts when the handle
  has already been released by the destructor or a consuming method.
- Consuming methods null the handle right after the ABI call.
- The destructor only releases a handle that is still owned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from ..models import (
    ConstructorInfo,
    DestructorInfo,
    GetterInfo,
    MethodInfo,
    ParameterInfo,
    SetterInfo,
    StaticMethodInfo,
)
from ..type_mapping import TypeMapper
from ..utils import comment_lines, indent_lines as _indent

INVALID_HANDLE_MESSAGE = (
    "The internal pointer on this object is no longer valid. Either the destructor "
    "or a method that consumes the internal pointer has been called."
)

# Holds the raw ABI return of a consuming call while the handle is released.
_CONSUMED_RESULT = "finch_result_"


@dataclass(frozen=True)
class SynthesizedMember:
    declaration: str
    definition: str


def validity_guard() -> List[str]:
    return [
        "if (this->self == nullptr) {",
        _indent(f'std::fputs("{INVALID_HANDLE_MESSAGE}\\n", stderr);'),
        _indent("std::abort();"),
        "}",
    ]


class MemberSynthesizer:
    """
    Emit declarations and definitions for one class's operations.

    Usage:
        synth = MemberSynthesizer(mapper)
        member = synth.method(method_info)
        member.declaration, member.definition
    """

    def __init__(self, mapper: TypeMapper) -> None:
        self.mapper = mapper

    # ---- Operation kinds ----

    def constructor(self, op: ConstructorInfo) -> SynthesizedMember:
        params = self._param_list(op.parameters)
        decl = comment_lines(op.comments) + [f"{op.class_name}({params});"]

        call = f"{op.fn_name}({self._arg_list(op.parameters)})"
        body = [f"this->self = {call};"]
        return SynthesizedMember(
            declaration="\n".join(decl),
            definition=_definition(f"inline {op.class_name}::{op.class_name}({params})", body),
        )

    def destructor(self, op: DestructorInfo) -> SynthesizedMember:
        body = [
            "if (this->self) {",
            _indent(f"{op.fn_name}(this->self);"),
            "}",
        ]
        return SynthesizedMember(
            declaration=f"~{op.class_name}();",
            definition=_definition(f"inline {op.class_name}::~{op.class_name}()", body),
        )

    def method(self, op: MethodInfo) -> SynthesizedMember:
        ret = self.mapper.host_type_of(op.ret_type)
        params = self._param_list(op.parameters)
        decl = comment_lines(op.comments) + [f"{ret} {op.method_name}({params});"]

        call = f"{op.fn_name}({self._handle_args(op.parameters)})"
        body = validity_guard()
        if op.consume:
            if self.mapper.is_void(op.ret_type):
                body += [f"{call};", "this->self = nullptr;"]
            else:
                body += [
                    f"auto {_CONSUMED_RESULT} = {call};",
                    "this->self = nullptr;",
                    f"return {self.mapper.convert_ret(op.ret_type, _CONSUMED_RESULT)};",
                ]
        else:
            body.append(f"return {self.mapper.convert_ret(op.ret_type, call)};")

        signature = f"inline {ret} {op.class_name}::{op.method_name}({params})"
        return SynthesizedMember(declaration="\n".join(decl), definition=_definition(signature, body))

    def static_method(self, op: StaticMethodInfo) -> SynthesizedMember:
        ret = self.mapper.host_type_of(op.ret_type)
        params = self._param_list(op.parameters)
        decl = comment_lines(op.comments) + [f"static {ret} {op.method_name}({params});"]

        call = f"{op.fn_name}({self._arg_list(op.parameters)})"
        body = [f"return {self.mapper.convert_ret(op.ret_type, call)};"]
        signature = f"inline {ret} {op.class_name}::{op.method_name}({params})"
        return SynthesizedMember(declaration="\n".join(decl), definition=_definition(signature, body))

    def getter(self, op: GetterInfo) -> SynthesizedMember:
        ret = self.mapper.host_type_of(op.type)
        decl = comment_lines(op.comments) + [f"{ret} {op.exposed_name}();"]

        call = f"{op.fn_name}(this->self)"
        body = validity_guard() + [f"return {self.mapper.convert_ret(op.type, call)};"]
        signature = f"inline {ret} {op.class_name}::{op.exposed_name}()"
        return SynthesizedMember(declaration="\n".join(decl), definition=_definition(signature, body))

    def setter(self, op: SetterInfo) -> SynthesizedMember:
        host = self.mapper.host_type_of(op.type)
        decl = comment_lines(op.comments) + [f"void {op.exposed_name}({host} value);"]

        body = validity_guard() + [f"{op.fn_name}(this->self, {self.mapper.convert_arg(op.type, 'value')});"]
        signature = f"inline void {op.class_name}::{op.exposed_name}({host} value)"
        return SynthesizedMember(declaration="\n".join(decl), definition=_definition(signature, body))

    # ---- Helpers ----

    def _param_list(self, params: Sequence[ParameterInfo]) -> str:
        return ", ".join(f"{self.mapper.host_type_of(p.type)} {p.name}" for p in params)

    def _arg_list(self, params: Sequence[ParameterInfo]) -> str:
        return ", ".join(self.mapper.convert_arg(p.type, p.name) for p in params)

    def _handle_args(self, params: Sequence[ParameterInfo]) -> str:
        return ", ".join(["this->self"] + [self.mapper.convert_arg(p.type, p.name) for p in params])


def _definition(signature: str, body: List[str]) -> str:
    lines = [f"{signature} {{"]
    lines.extend(_indent(stmt) for stmt in body)
    lines.append("}")
    return "\n".join(lines)


__all__ = [
    "INVALID_HANDLE_MESSAGE",
    "SynthesizedMember",
    "MemberSynthesizer",
    "validity_guard",
]
