#!/usr/bin/env python3
"""
Module emitter for finch C++ wrappers.

This module drives a whole IR module through the class synthesizer and writes:

- <output_dir>/<pkg>.h            (declarations)
- <output_dir>/<pkg>-impl.h       (inline definitions, included by <pkg>.h)
- <output_dir>/finch_optional.hpp (only when an optional wrapper is used)
- <output_dir>/CMakeLists.txt     (only when requested)

and patches the raw ABI header (<pkg>-finch_bindgen.h by default) with the
explicit template instantiations discovered while marshalling.

Design goals:
- Every artifact is rendered in memory first; nothing is written unless the
  whole module synthesized cleanly.
- Each file is written atomically and only when its content changed.
- clang-format runs afterwards on a best-effort basis.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import TemplateError

from ..errors import ArtifactError, GenerationError
from ..instantiations import missing_declarations
from ..models import GenerationContext, ModuleInfo
from ..type_mapping import AbiNames, MappingConfig, MarshalContext, TypeMapper
from ..utils import TemplateRenderer, run_clang_format, splice_before_marker, write_text
from .classes import ClassSynthesizer, SynthesizedClass
from .members import MemberSynthesizer

logger = logging.getLogger(__name__)

SUPPORT_DIR = Path(__file__).resolve().parent.parent / "support"


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class EmitterConfig:
    """
    Configuration for the module emitter.

    Template names are looked up through TemplateRenderer, so a user templates
    directory can override any of them.
    """
    declarations_template: str = "declarations.h.j2"
    definitions_template: str = "definitions.h.j2"
    build_file_template: str = "CMakeLists.txt.j2"
    # Instantiations are inserted right before the raw linkage block.
    boundary_marker: str = 'extern "C" {'
    optional_header: str = "finch_optional.hpp"
    build_file_name: str = "CMakeLists.txt"
    emit_build_file: bool = False
    format_output: bool = True
    clang_format: str = "clang-format"
    format_style: str = "Google"
    # Classes synthesized concurrently; 1 keeps everything on the calling thread.
    jobs: int = 1


@dataclass
class GenerationResult:
    package: str
    # Every artifact of the run, and the subset whose content actually changed.
    planned: List[Path] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)
    instantiations: List[str] = field(default_factory=list)
    uses_optional: bool = False
    format_error: Optional[str] = None

    @property
    def formatted(self) -> bool:
        return self.format_error is None


# --------------------------
# Emitter
# --------------------------

class CppEmitter:
    """
    Emit the C++ wrapper for a whole IR module.

    Usage:
        emitter = CppEmitter(ctx, renderer, config)
        result = emitter.emit(module)
    """

    def __init__(
        self,
        ctx: GenerationContext,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[EmitterConfig] = None,
        mapping: Optional[MappingConfig] = None,
        names: Optional[AbiNames] = None,
    ) -> None:
        self.ctx = ctx
        self.renderer = renderer or TemplateRenderer(ctx.templates_dir)
        self.config = config or EmitterConfig()
        self.mapping = mapping or MappingConfig()
        self.names = names

    # ---- Public API ----

    def emit(self, module: ModuleInfo) -> GenerationResult:
        """
        Generate all outputs for `module`. Raises GenerationError (or a subclass)
        before anything is written if any part of the module cannot be generated.
        """
        # Fresh per-run state: namespace, optional usage, instantiations.
        context = MarshalContext(module.package, names=self.names)
        mapper = TypeMapper(context, self.mapping)
        synthesizer = ClassSynthesizer(MemberSynthesizer(mapper))

        logger.info("Generating C++ wrapper for package %s (%d class(es))", module.package, len(module))
        classes = self._synthesize_classes(synthesizer, module)

        out = self.ctx.output_dir
        ns = module.namespace
        decl_path = out / f"{ns}.h"
        impl_path = out / f"{ns}-impl.h"
        abi_path = self.ctx.abi_header_path(module.package)

        template_ctx = {
            "package": module.package,
            "namespace": ns,
            "classes": classes,
            "abi_header": abi_path.name,
            "impl_header": impl_path.name,
            "optional_header": self.config.optional_header,
            "uses_optional": context.uses_optional,
            "exceptions_macro": self.mapping.exceptions_macro,
            "initialize_fn": context.names.initialize,
            "include_dir": out,
        }

        artifacts: Dict[Path, str] = {
            decl_path: self._render(self.config.declarations_template, template_ctx),
            impl_path: self._render(self.config.definitions_template, template_ctx),
        }

        declarations = context.registry.flush()
        abi_text = self._patched_abi_header(abi_path, declarations)
        if abi_text is not None:
            artifacts[abi_path] = abi_text

        if context.uses_optional:
            artifacts[out / self.config.optional_header] = self._support_file(self.config.optional_header)
        if self.config.emit_build_file:
            artifacts[out / self.config.build_file_name] = self._render(self.config.build_file_template, template_ctx)

        result = GenerationResult(
            package=module.package,
            instantiations=declarations,
            uses_optional=context.uses_optional,
        )
        result.planned = list(artifacts)
        result.written = self._publish(artifacts)

        if self.config.format_output and not self.ctx.dry_run:
            to_format = [p for p in (abi_path, decl_path, impl_path) if p.exists()]
            result.format_error = run_clang_format(to_format, binary=self.config.clang_format, style=self.config.format_style)
            if result.format_error:
                logger.warning("Formatting skipped: %s", result.format_error)

        logger.info("Generation complete under: %s", out)
        return result

    # ---- Internals ----

    def _synthesize_classes(self, synthesizer: ClassSynthesizer, module: ModuleInfo) -> List[SynthesizedClass]:
        classes = list(module)
        if self.config.jobs > 1 and len(classes) > 1:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
                return list(pool.map(synthesizer.synthesize, classes))
        return [synthesizer.synthesize(c) for c in classes]

    def _render(self, template_name: str, context: Dict) -> str:
        try:
            return self.renderer.render(template_name, context)
        except (TemplateError, RuntimeError) as e:
            raise GenerationError(f"Failed to render template {template_name}: {e}") from e

    def _patched_abi_header(self, path: Path, declarations: List[str]) -> Optional[str]:
        """
        Return the ABI header text with `declarations` spliced in before the
        boundary marker, or None when there is nothing to add.
        """
        if not declarations:
            logger.debug("No generic instantiations to declare; leaving %s untouched", path)
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ArtifactError(path, f"Failed to read ABI header ({e.strerror or e})") from e

        pending = missing_declarations(declarations, text)
        if not pending:
            logger.debug("ABI header %s already declares every instantiation", path)
            return None
        try:
            patched = splice_before_marker(text, self.config.boundary_marker, pending)
        except ValueError as e:
            raise ArtifactError(path, f"Boundary marker {self.config.boundary_marker!r} not found in ABI header") from e
        logger.info("Declaring %d instantiation(s) in %s", len(pending), path)
        return patched

    def _support_file(self, name: str) -> str:
        src = SUPPORT_DIR / name
        try:
            return src.read_text(encoding="utf-8")
        except OSError as e:
            raise ArtifactError(src, "Failed to read support file") from e

    def _publish(self, artifacts: Dict[Path, str]) -> List[Path]:
        written: List[Path] = []
        for path, content in artifacts.items():
            try:
                changed = write_text(path, content, dry_run=self.ctx.dry_run)
            except OSError as e:
                raise ArtifactError(path, f"Failed to write artifact ({e.strerror or e})") from e
            if changed:
                written.append(path)
        return written


def generate(
    module: ModuleInfo,
    ctx: GenerationContext,
    config: Optional[EmitterConfig] = None,
    renderer: Optional[TemplateRenderer] = None,
) -> GenerationResult:
    """
    One-shot convenience wrapper around CppEmitter.
    """
    return CppEmitter(ctx, renderer=renderer, config=config).emit(module)


__all__ = [
    "EmitterConfig",
    "GenerationResult",
    "CppEmitter",
    "generate",
]
