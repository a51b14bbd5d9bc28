#!/usr/bin/env python3
"""
Data models for the finch C++ wrapper generator.

This module provides strongly-typed, serializable data structures to describe:
- ABI types (primitive kinds, records, aliases, generic wrapper arguments)
- Operations (constructor, destructor, methods, statics, getters, setters)
- Classes and the module (package) that owns them
- Generation context (paths, flags)

The models are populated by the IR loader (`parsing/ir_loader.py`) and consumed
read-only by the type mapper and the emitters. `to_dict()` keeps them easy to
dump into the generation manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

# --------------------------
# Type model
# --------------------------

class TypeKind(Enum):
    VOID = "void"
    BOOL = "bool"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    ISIZE = "isize"
    USIZE = "usize"
    F32 = "f32"
    F64 = "f64"
    RECORD = "record"

    @property
    def is_primitive(self) -> bool:
        return self is not TypeKind.RECORD


@dataclass(frozen=True)
class TypeDescriptor:
    """
    A type as the frontend sees it on the ABI side.

    `display_name` is the fully-qualified ABI spelling (e.g. "int32_t" or
    "finch::bindgen::pkg::FinchString"). `canonical_type` is set when this type
    is a transparent alias of another one. `template_argument_types` is only
    populated for generic wrapper records; entries may be None when the frontend
    could not resolve an argument.
    """
    kind: TypeKind
    display_name: str
    canonical_type: Optional[TypeDescriptor] = None
    template_argument_types: Sequence[Optional[TypeDescriptor]] = ()

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind.value,
            "display_name": self.display_name,
            "canonical_type": self.canonical_type.to_dict() if self.canonical_type else None,
            "template_argument_types": [
                t.to_dict() if t is not None else None for t in self.template_argument_types
            ],
        }


VOID = TypeDescriptor(TypeKind.VOID, "void")


# --------------------------
# Operation models
# --------------------------

@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type: TypeDescriptor

    def to_dict(self) -> Dict:
        return {"name": self.name, "type": self.type.to_dict()}


@dataclass(frozen=True)
class ConstructorInfo:
    class_name: str
    fn_name: str
    parameters: Sequence[ParameterInfo] = ()
    comments: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "fn_name": self.fn_name,
            "parameters": [p.to_dict() for p in self.parameters],
            "comments": self.comments,
        }


@dataclass(frozen=True)
class DestructorInfo:
    class_name: str
    fn_name: str

    def to_dict(self) -> Dict:
        return {"class_name": self.class_name, "fn_name": self.fn_name}


@dataclass(frozen=True)
class MethodInfo:
    """
    An instance method. When `consume` is set the call takes ownership of the
    native handle and the wrapper is unusable afterwards.
    """
    class_name: str
    fn_name: str
    method_name: str
    ret_type: TypeDescriptor = VOID
    parameters: Sequence[ParameterInfo] = ()
    consume: bool = False
    comments: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "fn_name": self.fn_name,
            "method_name": self.method_name,
            "ret_type": self.ret_type.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
            "consume": self.consume,
            "comments": self.comments,
        }


@dataclass(frozen=True)
class StaticMethodInfo:
    class_name: str
    fn_name: str
    method_name: str
    ret_type: TypeDescriptor = VOID
    parameters: Sequence[ParameterInfo] = ()
    comments: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "fn_name": self.fn_name,
            "method_name": self.method_name,
            "ret_type": self.ret_type.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
            "comments": self.comments,
        }


@dataclass(frozen=True)
class GetterInfo:
    class_name: str
    fn_name: str
    field_name: str
    type: TypeDescriptor
    comments: Optional[str] = None

    @property
    def exposed_name(self) -> str:
        return f"get_{self.field_name}"

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "fn_name": self.fn_name,
            "field_name": self.field_name,
            "type": self.type.to_dict(),
            "comments": self.comments,
        }


@dataclass(frozen=True)
class SetterInfo:
    class_name: str
    fn_name: str
    field_name: str
    type: TypeDescriptor
    comments: Optional[str] = None

    @property
    def exposed_name(self) -> str:
        return f"set_{self.field_name}"

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "fn_name": self.fn_name,
            "field_name": self.field_name,
            "type": self.type.to_dict(),
            "comments": self.comments,
        }


# --------------------------
# Class / module model
# --------------------------

@dataclass
class ClassInfo:
    """
    One wrapped class. `c_name` is the opaque handle type on the ABI side; the
    wrapper stores a `c_name *` and hands it to every non-static call.
    """
    name: str
    c_name: str
    constructor: Optional[ConstructorInfo] = None
    destructor: Optional[DestructorInfo] = None
    statics: List[StaticMethodInfo] = field(default_factory=list)
    methods: List[MethodInfo] = field(default_factory=list)
    getters: List[GetterInfo] = field(default_factory=list)
    setters: List[SetterInfo] = field(default_factory=list)
    comments: Optional[str] = None

    @property
    def operation_count(self) -> int:
        return (
            (1 if self.constructor else 0)
            + (1 if self.destructor else 0)
            + len(self.statics)
            + len(self.methods)
            + len(self.getters)
            + len(self.setters)
        )

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "c_name": self.c_name,
            "comments": self.comments,
            "constructor": self.constructor.to_dict() if self.constructor else None,
            "destructor": self.destructor.to_dict() if self.destructor else None,
            "statics": [s.to_dict() for s in self.statics],
            "methods": [m.to_dict() for m in self.methods],
            "getters": [g.to_dict() for g in self.getters],
            "setters": [s.to_dict() for s in self.setters],
        }


@dataclass
class ModuleInfo:
    """
    The whole IR for one package: classes keyed by name, in input order.
    """
    package: str
    classes: Dict[str, ClassInfo] = field(default_factory=dict)

    @property
    def namespace(self) -> str:
        """
        C++ identifier for the package (dashes are not valid in namespaces).
        """
        return package_identifier(self.package)

    def __iter__(self) -> Iterator[ClassInfo]:
        return iter(self.classes.values())

    def __len__(self) -> int:
        return len(self.classes)

    def add(self, cls: ClassInfo) -> None:
        self.classes[cls.name] = cls

    def to_dict(self) -> Dict:
        return {
            "package": self.package,
            "classes": {name: c.to_dict() for name, c in self.classes.items()},
        }


def package_identifier(package: str) -> str:
    return package.replace("-", "_")


# --------------------------
# Generation context
# --------------------------

@dataclass
class GenerationContext:
    """
    Parameters for a single generation run.

    Paths are absolute. `abi_header` defaults to the raw ABI header that the
    bindgen step drops next to the outputs (`<pkg>-finch_bindgen.h`).
    """
    output_dir: Path
    abi_header: Optional[Path] = None
    templates_dir: Optional[Path] = None
    dry_run: bool = False

    def abi_header_path(self, package: str) -> Path:
        if self.abi_header is not None:
            return self.abi_header
        return self.output_dir / f"{package_identifier(package)}-finch_bindgen.h"

    def to_dict(self) -> Dict:
        return {
            "output_dir": str(self.output_dir),
            "abi_header": str(self.abi_header) if self.abi_header else None,
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "dry_run": self.dry_run,
        }


__all__ = [
    "TypeKind",
    "TypeDescriptor",
    "VOID",
    "ParameterInfo",
    "ConstructorInfo",
    "DestructorInfo",
    "MethodInfo",
    "StaticMethodInfo",
    "GetterInfo",
    "SetterInfo",
    "ClassInfo",
    "ModuleInfo",
    "GenerationContext",
    "package_identifier",
]
