#!/usr/bin/env python3
"""
finch C++ wrapper generator

Reads the class/operation IR (JSON) a finch package exports and writes a C++
wrapper over the package's raw C ABI header:

- <output_dir>/<pkg>.h and <output_dir>/<pkg>-impl.h
- finch_optional.hpp next to them when an optional wrapper is used
- CMakeLists.txt with --build-file
- manifest.json unless --no-manifest

The raw ABI header (<pkg>-finch_bindgen.h) is patched in place with the
template instantiations the wrapper relies on. It is looked up in the output
directory unless --abi-header names it.

Example:
  finch-cpp-generator --ir build/my-lib.ir.json --output-dir include/my_lib

Exit codes:
  0 success, 1 templating setup failed, 2 IR unreadable, 3 IR invalid,
  4 generation failed, 5 manifest failed
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .emitters.cpp_emitter import CppEmitter, EmitterConfig
from .errors import GenerationError, IRFormatError
from .manifest import emit_manifest
from .models import GenerationContext
from .parsing.ir_loader import load_ir
from .utils import DEFAULT_LOG_FORMAT, TemplateRenderer, configure_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


def _add_logging_options(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("logging")
    g.add_argument("-v", "--verbose", action="count", default=0, help="Log debug details.")
    g.add_argument("-q", "--quiet", action="count", default=0, help="Only warnings (-q) or only errors (-qq).")
    g.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Log level by name; takes precedence over -v and -q.",
    )
    g.add_argument("--log-format", default=DEFAULT_LOG_FORMAT, help="logging.Formatter format string.")
    g.add_argument("--log-file", default=None, help="Also write the log to this file.")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    defaults = EmitterConfig()
    p = argparse.ArgumentParser(description="Generate C++ wrapper classes for a finch package")

    p.add_argument(
        "--ir",
        required=True,
        help="Path to the JSON IR document describing the package's classes and operations.",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for the generated headers.",
    )
    p.add_argument(
        "--abi-header",
        default=None,
        help="Raw ABI header to patch. Defaults to <output-dir>/<pkg>-finch_bindgen.h.",
    )
    p.add_argument(
        "--boundary-marker",
        default=defaults.boundary_marker,
        help="Text in the ABI header before which template instantiations are inserted.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory. If omitted, package templates are used.",
    )
    p.add_argument(
        "--build-file",
        action="store_true",
        help="Also emit a CMakeLists.txt exposing the headers as an INTERFACE library.",
    )
    p.add_argument(
        "--no-format",
        action="store_true",
        help="Do not run clang-format over the generated headers.",
    )
    p.add_argument(
        "--clang-format",
        default=defaults.clang_format,
        help="clang-format executable to use.",
    )
    p.add_argument(
        "--format-style",
        default=defaults.format_style,
        help="clang-format --style value.",
    )
    p.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Number of classes to synthesize concurrently.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the whole generation and report what would be written without writing files.",
    )
    _add_logging_options(p)

    ns = p.parse_args(argv)
    if ns.jobs < 1:
        p.error("--jobs must be at least 1")
    return ns


def _resolve_level(ns: argparse.Namespace) -> int:
    if ns.log_level:
        return logging.getLevelName(ns.log_level)
    if ns.verbose:
        return logging.DEBUG
    return {0: logging.INFO, 1: logging.WARNING}.get(ns.quiet, logging.ERROR)


def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)
    configure_logging(level=_resolve_level(ns), to_file=ns.log_file, fmt=ns.log_format)

    ctx = GenerationContext(
        output_dir=Path(ns.output_dir).resolve(),
        abi_header=Path(ns.abi_header).resolve() if ns.abi_header else None,
        templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
        dry_run=ns.dry_run,
    )

    try:
        renderer = TemplateRenderer(ctx.templates_dir)
    except Exception:
        logger.exception("Failed to initialize templating")
        return 1

    try:
        module = load_ir(ns.ir)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read IR %s: %s", ns.ir, e)
        return 2
    except IRFormatError as e:
        logger.error("Invalid IR %s: %s", ns.ir, e)
        return 3

    for c in module:
        logger.debug(
            "Class %s (handle %s): statics=%d methods=%d getters=%d setters=%d",
            c.name, c.c_name, len(c.statics), len(c.methods), len(c.getters), len(c.setters),
        )

    config = EmitterConfig(
        boundary_marker=ns.boundary_marker,
        emit_build_file=ns.build_file,
        format_output=not ns.no_format,
        clang_format=ns.clang_format,
        format_style=ns.format_style,
        jobs=ns.jobs,
    )
    try:
        result = CppEmitter(ctx=ctx, renderer=renderer, config=config).emit(module)
    except GenerationError as e:
        logger.error("Failed to generate files: %s", e)
        return 4
    except Exception:
        logger.exception("Failed to generate files")
        return 4

    if not ns.no_manifest:
        try:
            emit_manifest(ctx, module, instantiations=result.instantiations, written=result.written)
        except Exception:
            logger.exception("Failed to write manifest")
            return 5

    if ctx.dry_run:
        logger.info("Dry run finished; %d file(s) would be written", len(result.planned))
    return 0


if __name__ == "__main__":
    sys.exit(main())
