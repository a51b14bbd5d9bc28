#!/usr/bin/env python3
"""
JSON IR loading for the finch C++ wrapper generator.

The frontend describes a package as a JSON document:

    {
      "package": "my-lib",
      "classes": {
        "Counter": {
          "c_name": "CounterHandle",
          "comments": "A counter.",
          "constructor": {"fn_name": "counter_new", "parameters": [...]},
          "destructor": {"fn_name": "counter_drop"},
          "statics": [...], "methods": [...], "getters": [...], "setters": [...]
        }
      }
    }

`classes` may also be a list of class objects carrying their own "name".
Types are objects with "kind", "display_name" and optionally "canonical_type"
and "template_argument_types".

Accepted aliases:
- "new" / "drop" for "constructor" / "destructor"
- "arg_names" + "arg_types" instead of "parameters"
- a missing or null return type means void

Any structural problem raises IRFormatError naming where it was found.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

logger = logging.getLogger(__name__)

from ..errors import IRFormatError
from ..models import (
    VOID,
    ClassInfo,
    ConstructorInfo,
    DestructorInfo,
    GetterInfo,
    MethodInfo,
    ModuleInfo,
    ParameterInfo,
    SetterInfo,
    StaticMethodInfo,
    TypeDescriptor,
    TypeKind,
)


# --------------------------
# Entry points
# --------------------------

def load_ir(path: Union[str, Path]) -> ModuleInfo:
    """
    Read and parse an IR document. OSError and JSON syntax errors propagate
    unchanged so callers can tell an unreadable file from a malformed one.
    """
    p = Path(path)
    with open(p, "r", encoding="utf-8") as f:
        data = json.load(f)
    module = module_from_dict(data)
    logger.info("Loaded IR for package %s from %s (%d class(es))", module.package, p, len(module))
    return module


def module_from_dict(data: Any) -> ModuleInfo:
    if not isinstance(data, dict):
        raise IRFormatError("IR root must be an object")
    package = _require_str(data, "package", "IR root")
    module = ModuleInfo(package=package)

    raw_classes = data.get("classes", {})
    if isinstance(raw_classes, dict):
        entries = [(name, body) for name, body in raw_classes.items()]
    elif isinstance(raw_classes, list):
        entries = []
        for i, body in enumerate(raw_classes):
            if not isinstance(body, dict):
                raise IRFormatError(f"classes[{i}] must be an object")
            entries.append((_require_str(body, "name", f"classes[{i}]"), body))
    else:
        raise IRFormatError("'classes' must be an object or a list")

    for name, body in entries:
        if name in module.classes:
            raise IRFormatError(f"Duplicate class '{name}'")
        module.add(class_from_dict(name, body))
    return module


# --------------------------
# Classes and operations
# --------------------------

def class_from_dict(name: str, data: Any) -> ClassInfo:
    where = f"class {name}"
    if not isinstance(data, dict):
        raise IRFormatError(f"{where} must be an object")

    ctor = _first_present(data, "constructor", "new")
    dtor = _first_present(data, "destructor", "drop")

    return ClassInfo(
        name=name,
        c_name=_require_str(data, "c_name", where),
        constructor=_constructor(name, ctor, f"{where} constructor") if ctor is not None else None,
        destructor=_destructor(name, dtor, f"{where} destructor") if dtor is not None else None,
        statics=[_static(name, s, f"{where} statics[{i}]") for i, s in enumerate(_list(data, "statics", where))],
        methods=[_method(name, m, f"{where} methods[{i}]") for i, m in enumerate(_list(data, "methods", where))],
        getters=[_getter(name, g, f"{where} getters[{i}]") for i, g in enumerate(_list(data, "getters", where))],
        setters=[_setter(name, s, f"{where} setters[{i}]") for i, s in enumerate(_list(data, "setters", where))],
        comments=_optional_str(data, "comments", where),
    )


def _constructor(class_name: str, data: Any, where: str) -> ConstructorInfo:
    _require_obj(data, where)
    return ConstructorInfo(
        class_name=class_name,
        fn_name=_require_str(data, "fn_name", where),
        parameters=_parameters(data, where),
        comments=_optional_str(data, "comments", where),
    )


def _destructor(class_name: str, data: Any, where: str) -> DestructorInfo:
    _require_obj(data, where)
    return DestructorInfo(class_name=class_name, fn_name=_require_str(data, "fn_name", where))


def _method(class_name: str, data: Any, where: str) -> MethodInfo:
    _require_obj(data, where)
    consume = data.get("consume", False)
    if not isinstance(consume, bool):
        raise IRFormatError(f"{where}: 'consume' must be a boolean")
    return MethodInfo(
        class_name=class_name,
        fn_name=_require_str(data, "fn_name", where),
        method_name=_require_str(data, "method_name", where),
        ret_type=_return_type(data, where),
        parameters=_parameters(data, where),
        consume=consume,
        comments=_optional_str(data, "comments", where),
    )


def _static(class_name: str, data: Any, where: str) -> StaticMethodInfo:
    _require_obj(data, where)
    return StaticMethodInfo(
        class_name=class_name,
        fn_name=_require_str(data, "fn_name", where),
        method_name=_require_str(data, "method_name", where),
        ret_type=_return_type(data, where),
        parameters=_parameters(data, where),
        comments=_optional_str(data, "comments", where),
    )


def _getter(class_name: str, data: Any, where: str) -> GetterInfo:
    _require_obj(data, where)
    return GetterInfo(
        class_name=class_name,
        fn_name=_require_str(data, "fn_name", where),
        field_name=_require_str(data, "field_name", where),
        type=type_from_dict(data.get("type"), f"{where} type"),
        comments=_optional_str(data, "comments", where),
    )


def _setter(class_name: str, data: Any, where: str) -> SetterInfo:
    _require_obj(data, where)
    return SetterInfo(
        class_name=class_name,
        fn_name=_require_str(data, "fn_name", where),
        field_name=_require_str(data, "field_name", where),
        type=type_from_dict(data.get("type"), f"{where} type"),
        comments=_optional_str(data, "comments", where),
    )


def _parameters(data: Dict[str, Any], where: str) -> List[ParameterInfo]:
    if "parameters" in data:
        raw = data["parameters"]
        if not isinstance(raw, list):
            raise IRFormatError(f"{where}: 'parameters' must be a list")
        params = []
        for i, p in enumerate(raw):
            pw = f"{where} parameters[{i}]"
            _require_obj(p, pw)
            params.append(ParameterInfo(_require_str(p, "name", pw), type_from_dict(p.get("type"), f"{pw} type")))
        return params

    names = data.get("arg_names", [])
    types = data.get("arg_types", [])
    if not isinstance(names, list) or not isinstance(types, list):
        raise IRFormatError(f"{where}: 'arg_names' and 'arg_types' must be lists")
    if len(names) != len(types):
        raise IRFormatError(f"{where}: {len(names)} argument name(s) but {len(types)} argument type(s)")
    params = []
    for i, (n, t) in enumerate(zip(names, types)):
        if not isinstance(n, str) or not n:
            raise IRFormatError(f"{where}: arg_names[{i}] must be a non-empty string")
        params.append(ParameterInfo(n, type_from_dict(t, f"{where} arg_types[{i}]")))
    return params


def _return_type(data: Dict[str, Any], where: str) -> TypeDescriptor:
    raw = data.get("ret_type")
    if raw is None:
        return VOID
    return type_from_dict(raw, f"{where} ret_type")


# --------------------------
# Types
# --------------------------

def type_from_dict(data: Any, where: str = "type") -> TypeDescriptor:
    _require_obj(data, where)
    kind = parse_kind(data.get("kind"), where)
    display_name = _require_str(data, "display_name", where)

    canonical = data.get("canonical_type")
    canonical_type = type_from_dict(canonical, f"{where} canonical_type") if canonical is not None else None

    raw_args = data.get("template_argument_types", [])
    if not isinstance(raw_args, list):
        raise IRFormatError(f"{where}: 'template_argument_types' must be a list")
    # None entries are kept: the resolver reports them as missing arguments.
    args = tuple(
        type_from_dict(a, f"{where} template_argument_types[{i}]") if a is not None else None
        for i, a in enumerate(raw_args)
    )
    return TypeDescriptor(kind, display_name, canonical_type, args)


def parse_kind(value: Any, where: str = "type") -> TypeKind:
    if not isinstance(value, str):
        raise IRFormatError(f"{where}: 'kind' must be a string")
    try:
        return TypeKind(value.strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in TypeKind)
        raise IRFormatError(f"{where}: unknown kind '{value}' (expected one of: {valid})") from None


# --------------------------
# Field helpers
# --------------------------

def _require_obj(data: Any, where: str) -> None:
    if not isinstance(data, dict):
        raise IRFormatError(f"{where} must be an object")


def _require_str(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise IRFormatError(f"{where}: '{key}' must be a non-empty string")
    return value


def _optional_str(data: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise IRFormatError(f"{where}: '{key}' must be a string")
    return value


def _list(data: Dict[str, Any], key: str, where: str) -> List[Any]:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise IRFormatError(f"{where}: '{key}' must be a list")
    return value


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if data.get(k) is not None:
            return data[k]
    return None


__all__ = [
    "load_ir",
    "module_from_dict",
    "class_from_dict",
    "type_from_dict",
    "parse_kind",
]
