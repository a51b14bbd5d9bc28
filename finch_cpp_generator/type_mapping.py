#!/usr/bin/env python3
"""
Type mapping for finch C++ wrappers.

This module decides, for every IR type, what the C++ caller sees and how values
cross the C ABI. It provides:

- Resolution of type aliases (`canonical_type` chains) and classification of a
  resolved type into a closed set of variants: Primitive, OwnedString,
  OptionalOf(inner), ResultOf(ok) or Unknown
- Host type spelling for each variant (`std::string`, `finch::optional<T>`, ...)
- Argument conversions (host value -> ABI value) and return conversions
  (ABI value -> host-owned value, freeing ABI-owned resources on the way)
- Registration of every generic record instantiation the conversions touch

Typical usage (high level):

    from .type_mapping import MarshalContext, TypeMapper

    context = MarshalContext(package="my-lib")
    mapper = TypeMapper(context)

    host = mapper.host_type_of(param.type)
    arg_expr = mapper.convert_arg(param.type, param.name)
    ret_expr = mapper.convert_ret(method.ret_type, call_expr)

Design notes:
- Conversions are C++ *expressions*. Anything that needs statements (freeing a
  string, branching on a tag) is an immediately-invoked capture-less lambda
  taking the value by value, so conversions nest to any depth.
- The `Result` error channel is always the owned string record; only the ok
  payload is a template argument.
- Unknown records are fatal: every public entry point raises UnknownTypeError.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Union

from .errors import GenerationError, UnknownTypeError
from .instantiations import InstantiationRegistry
from .models import TypeDescriptor, TypeKind, package_identifier
from .utils import indent_lines

logger = logging.getLogger(__name__)

_INDENT = "    "


# --------------------------
# Reserved ABI names
# --------------------------

@dataclass(frozen=True)
class AbiNames:
    """
    Names the raw ABI header reserves for one package.

    Defaults follow the bindgen layout: everything lives in
    `finch::bindgen::<package>` and the string helpers are prefixed with
    `___finch_bindgen___<package>___`.
    """
    namespace: str
    string: str
    option: str
    result: str
    string_new: str
    string_drop: str
    initialize: str
    # Record layout
    string_ptr_field: str = "ptr"
    string_len_field: str = "len"
    tag_field: str = "tag"
    tag_type: str = "Tag"
    some_field: str = "some"
    ok_field: str = "ok"
    err_field: str = "err"
    payload_field: str = "_0"

    @staticmethod
    def for_package(package: str, root_namespace: str = "finch::bindgen") -> "AbiNames":
        ident = package_identifier(package)
        ns = f"{root_namespace}::{ident}"
        helper = f"{ns}::___finch_bindgen___{ident}___"
        return AbiNames(
            namespace=ns,
            string=f"{ns}::FinchString",
            option=f"{ns}::FinchOption",
            result=f"{ns}::FinchResult",
            string_new=f"{helper}string_new",
            string_drop=f"{helper}string_drop",
            initialize=f"{helper}initialize",
        )


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class MappingConfig:
    """
    Host-side spellings used by the generated code.
    """
    host_string: str = "std::string"
    host_optional: str = "finch::optional"
    host_in_place: str = "finch::in_place"
    # Defined by the declaration header from the compiler's exception support.
    exceptions_macro: str = "FINCH_EXCEPTIONS"
    error_exception: str = "std::runtime_error"


# --------------------------
# Marshalling context
# --------------------------

class MarshalContext:
    """
    Per-run state shared by every mapper and synthesizer call.

    Holds the package's ABI names, the instantiation registry and whether any
    optional wrapper has been seen (which decides if the optional support header
    is shipped). Safe to share across threads.
    """

    def __init__(
        self,
        package: str,
        names: Optional[AbiNames] = None,
        registry: Optional[InstantiationRegistry] = None,
    ) -> None:
        self.package = package
        self.names = names or AbiNames.for_package(package)
        self.registry = registry if registry is not None else InstantiationRegistry()
        self._uses_optional = False
        self._lock = threading.Lock()

    @property
    def namespace(self) -> str:
        return self.names.namespace

    @property
    def uses_optional(self) -> bool:
        with self._lock:
            return self._uses_optional

    def mark_optional_used(self) -> None:
        with self._lock:
            if not self._uses_optional:
                logger.debug("Optional wrapper used; optional support header will be emitted")
            self._uses_optional = True

    def register(self, instantiation: str) -> None:
        if self.registry.register(instantiation):
            logger.debug("Registered instantiation %s", instantiation)


# --------------------------
# Classification model
# --------------------------

@dataclass(frozen=True)
class Primitive:
    type: TypeDescriptor


@dataclass(frozen=True)
class OwnedString:
    type: TypeDescriptor


@dataclass(frozen=True)
class OptionalOf:
    type: TypeDescriptor
    inner: "Classification"


@dataclass(frozen=True)
class ResultOf:
    type: TypeDescriptor
    ok: "Classification"


@dataclass(frozen=True)
class Unknown:
    display_name: str
    reason: Optional[str] = None


Classification = Union[Primitive, OwnedString, OptionalOf, ResultOf, Unknown]


def resolve_canonical(t: TypeDescriptor) -> TypeDescriptor:
    """
    Follow `canonical_type` until reaching a type that aliases nothing.
    """
    seen = set()
    cur = t
    while cur.canonical_type is not None:
        if id(cur) in seen:
            raise GenerationError(f"Cyclic type alias involving '{t.display_name}'")
        seen.add(id(cur))
        cur = cur.canonical_type
    return cur


# --------------------------
# Mapper
# --------------------------

class TypeMapper:
    """
    Classifies IR types and produces host spellings and conversion expressions.
    """

    def __init__(self, context: MarshalContext, config: Optional[MappingConfig] = None) -> None:
        self.context = context
        self.config = config or MappingConfig()

    @property
    def names(self) -> AbiNames:
        return self.context.names

    # ---- Type resolver ----

    def classify(self, t: TypeDescriptor) -> Classification:
        """
        Resolve aliases and classify. Never raises for unknown records; returns
        `Unknown` carrying the innermost offending display name instead.
        """
        r = resolve_canonical(t)
        if r.kind.is_primitive:
            return Primitive(r)

        name = r.display_name.strip()
        if name == self.names.string:
            return OwnedString(r)
        if name.startswith(self.names.option):
            inner = self._single_argument(r)
            return inner if isinstance(inner, Unknown) else OptionalOf(r, inner)
        if name.startswith(self.names.result):
            ok = self._single_argument(r)
            return ok if isinstance(ok, Unknown) else ResultOf(r, ok)
        return Unknown(r.display_name, "not a primitive, string, optional or result type")

    def _single_argument(self, r: TypeDescriptor) -> Classification:
        args = list(r.template_argument_types)
        if len(args) != 1:
            return Unknown(r.display_name, f"expected exactly one template argument, got {len(args)}")
        if args[0] is None:
            return Unknown(r.display_name, "template argument is missing")
        inner = self.classify(args[0])
        if isinstance(inner, Primitive) and inner.type.kind is TypeKind.VOID:
            return Unknown(r.display_name, "void is not a valid template argument")
        return inner

    def _known(self, t: TypeDescriptor) -> Classification:
        c = self.classify(t)
        if isinstance(c, Unknown):
            raise UnknownTypeError(c.display_name, c.reason)
        return c

    # ---- Public API ----

    def host_type_of(self, t: TypeDescriptor) -> str:
        return self._host(self._known(t))

    def abi_type_of(self, t: TypeDescriptor) -> str:
        return self._abi(self._known(t))

    def convert_arg(self, t: TypeDescriptor, expr: str) -> str:
        """
        Expression turning the host value `expr` into its ABI representation.
        """
        return self._arg(self._known(t), expr, 0)

    def convert_ret(self, t: TypeDescriptor, expr: str) -> str:
        """
        Expression turning the ABI value `expr` into a host-owned value.
        """
        return self._ret(self._known(t), expr, 0)

    def is_void(self, t: TypeDescriptor) -> bool:
        c = self._known(t)
        return isinstance(c, Primitive) and c.type.kind is TypeKind.VOID

    # ---- Spellings ----

    def _host(self, c: Classification) -> str:
        if isinstance(c, Primitive):
            return c.type.display_name
        if isinstance(c, OwnedString):
            return self.config.host_string
        if isinstance(c, OptionalOf):
            self.context.mark_optional_used()
            return f"{self.config.host_optional}<{self._host(c.inner)}>"
        if isinstance(c, ResultOf):
            return self._host(c.ok)
        raise UnknownTypeError(c.display_name, c.reason)

    def _abi(self, c: Classification) -> str:
        if isinstance(c, Primitive):
            return c.type.display_name
        if isinstance(c, OwnedString):
            return self.names.string
        if isinstance(c, OptionalOf):
            return f"{self.names.option}<{self._abi(c.inner)}>"
        if isinstance(c, ResultOf):
            return f"{self.names.result}<{self._abi(c.ok)}>"
        raise UnknownTypeError(c.display_name, c.reason)

    # ---- Argument conversions ----

    def _arg(self, c: Classification, expr: str, depth: int) -> str:
        if isinstance(c, Primitive):
            return expr
        if isinstance(c, OwnedString):
            return self._string_arg(expr, depth)
        if isinstance(c, OptionalOf):
            return self._optional_arg(c, expr, depth)
        if isinstance(c, ResultOf):
            raise UnknownTypeError(c.type.display_name, "result types cannot be passed as arguments")
        raise UnknownTypeError(c.display_name, c.reason)

    def _string_arg(self, expr: str, depth: int) -> str:
        v = f"value{depth}"
        body = [
            f"return {self.names.string_new}(reinterpret_cast<const uint8_t *>({v}.data()), {v}.size());",
        ]
        return _iife(f"const {self.config.host_string} &{v}", self.names.string, body, expr)

    def _optional_arg(self, c: OptionalOf, expr: str, depth: int) -> str:
        n = self.names
        abi = self._abi(c)
        host = self._host(c)
        self.context.register(abi)
        v = f"value{depth}"
        inner = self._arg(c.inner, f"*{v}", depth + 1)
        body = [
            f"if ({v}.has_value()) {{",
            _indent(f"return {abi}{{{abi}::{n.tag_type}::Some, {{{{{inner}}}}}}};"),
            "}",
            f"return {abi}{{{abi}::{n.tag_type}::None, {{}}}};",
        ]
        return _iife(f"{host} {v}", abi, body, expr)

    # ---- Return conversions ----

    def _ret(self, c: Classification, expr: str, depth: int) -> str:
        if isinstance(c, Primitive):
            return expr
        if isinstance(c, OwnedString):
            return self._string_ret(expr, depth)
        if isinstance(c, OptionalOf):
            return self._optional_ret(c, expr, depth)
        if isinstance(c, ResultOf):
            return self._result_ret(c, expr, depth)
        raise UnknownTypeError(c.display_name, c.reason)

    def _string_ret(self, expr: str, depth: int) -> str:
        n = self.names
        v = f"value{depth}"
        out = f"out{depth}"
        body = [
            f"{self.config.host_string} {out}(reinterpret_cast<const char *>({v}.{n.string_ptr_field}), {v}.{n.string_len_field});",
            f"{n.string_drop}({v});",
            f"return {out};",
        ]
        return _iife(f"{n.string} {v}", self.config.host_string, body, expr)

    def _optional_ret(self, c: OptionalOf, expr: str, depth: int) -> str:
        n = self.names
        abi = self._abi(c)
        host = self._host(c)
        self.context.register(abi)
        v = f"value{depth}"
        inner = self._ret(c.inner, f"{v}.{n.some_field}.{n.payload_field}", depth + 1)
        body = [
            f"if ({v}.{n.tag_field} == {abi}::{n.tag_type}::Some) {{",
            _indent(f"return {host}({self.config.host_in_place}, {inner});"),
            "}",
            f"return {host}();",
        ]
        return _iife(f"{abi} {v}", host, body, expr)

    def _result_ret(self, c: ResultOf, expr: str, depth: int) -> str:
        n = self.names
        cfg = self.config
        abi = self._abi(c)
        host = self._host(c)
        self.context.register(abi)
        v = f"value{depth}"
        message = f"message{depth}"
        err = self._string_ret(f"{v}.{n.err_field}.{n.payload_field}", depth + 1)
        ok = self._ret(c.ok, f"{v}.{n.ok_field}.{n.payload_field}", depth + 1)
        body = [
            f"if ({v}.{n.tag_field} == {abi}::{n.tag_type}::Err) {{",
            _indent(f"{cfg.host_string} {message} = {err};"),
            f"#if {cfg.exceptions_macro}",
            _indent(f"throw {cfg.error_exception}({message});"),
            "#else",
            _indent(f'std::fprintf(stderr, "%s\\n", {message}.c_str());'),
            _indent("std::abort();"),
            "#endif",
            "}",
            f"return {ok};",
        ]
        return _iife(f"{abi} {v}", host, body, expr)


# --------------------------
# Helpers
# --------------------------

def _indent(text: str, prefix: str = _INDENT) -> str:
    return indent_lines(text, prefix)


def _iife(param: str, ret_type: str, body: List[str], arg: str) -> str:
    """
    Render `[](param) -> ret_type { body }(arg)`.
    """
    lines = [f"[]({param}) -> {ret_type} {{"]
    lines.extend(_indent(stmt) for stmt in body)
    lines.append(f"}}({arg})")
    return "\n".join(lines)


__all__ = [
    "AbiNames",
    "MappingConfig",
    "MarshalContext",
    "Primitive",
    "OwnedString",
    "OptionalOf",
    "ResultOf",
    "Unknown",
    "Classification",
    "resolve_canonical",
    "TypeMapper",
]
