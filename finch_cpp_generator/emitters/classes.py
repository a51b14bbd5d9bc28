#!/usr/bin/env python3
"""
Class synthesis: compose one class's members into a declaration block and a
definition block.

The declaration wraps the raw ABI handle in a non-copyable class; the handle
starts out null and is only ever owned by one wrapper.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from ..models import ClassInfo
from ..utils import comment_lines, indent_lines
from .members import MemberSynthesizer, SynthesizedMember

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesizedClass:
    name: str
    declaration: str
    definition: str


class ClassSynthesizer:
    def __init__(self, members: MemberSynthesizer) -> None:
        self.members = members

    def synthesize(self, cls: ClassInfo) -> SynthesizedClass:
        if cls.operation_count == 0:
            logger.warning("Class %s (handle %s) has no operations; generating an empty wrapper", cls.name, cls.c_name)

        synthesized = self._members(cls)
        return SynthesizedClass(
            name=cls.name,
            declaration=self._declaration(cls, synthesized),
            definition="\n\n".join(m.definition for m in synthesized),
        )

    def _members(self, cls: ClassInfo) -> List[SynthesizedMember]:
        # Order matters for readability only: ctor, dtor, statics, methods, accessors.
        out: List[SynthesizedMember] = []
        if cls.constructor:
            out.append(self.members.constructor(cls.constructor))
        if cls.destructor:
            out.append(self.members.destructor(cls.destructor))
        out.extend(self.members.static_method(s) for s in cls.statics)
        out.extend(self.members.method(m) for m in cls.methods)
        out.extend(self.members.getter(g) for g in cls.getters)
        out.extend(self.members.setter(s) for s in cls.setters)
        logger.debug("Synthesized %d member(s) for %s", len(out), cls.name)
        return out

    def _declaration(self, cls: ClassInfo, synthesized: List[SynthesizedMember]) -> str:
        lines = comment_lines(cls.comments)
        lines.append(f"class {cls.name} {{")
        lines.append(" public:")
        for i, member in enumerate(synthesized):
            if i:
                lines.append("")
            lines.append(indent_lines(member.declaration, "  "))
        if synthesized:
            lines.append("")
        lines.append(" private:")
        lines.append(f"  {cls.name}(const {cls.name} &) = delete;")
        lines.append(f"  {cls.name} &operator=(const {cls.name} &) = delete;")
        lines.append(f"  {cls.c_name} *self = nullptr;")
        lines.append("};")
        return "\n".join(lines)


__all__ = ["SynthesizedClass", "ClassSynthesizer"]
