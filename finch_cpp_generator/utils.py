#!/usr/bin/env python3
"""
Shared helpers for the finch C++ wrapper generator.

- Logging setup for the command line entrypoint.
- Text helpers used by the emitters: indentation, `///` comment blocks and
  splicing declarations into an existing header.
- `TemplateRenderer`: Jinja2 environment that prefers a user template
  directory over the templates shipped with the package.
- Output writing: atomic replace, LF line endings, unchanged files left alone.
- The clang-format pass run over the generated headers.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO, Union

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "finch_cpp_generator"
DEFAULT_LOG_FORMAT = "%(levelname)s: %(message)s"


def _level_number(level: Optional[Union[int, str]]) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    named = logging.getLevelName(level.strip().upper())
    return named if isinstance(named, int) else logging.INFO


def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route generator logs to `stream` (stderr by default) and, when `to_file`
    is given, to that file as well. Any handlers already installed on the
    root logger are replaced.

    `level` accepts a number or a level name such as "DEBUG"; unknown names
    fall back to INFO.
    """
    threshold = _level_number(level)
    formatter = logging.Formatter(fmt or DEFAULT_LOG_FORMAT)

    sinks: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if to_file:
        sinks.append(logging.FileHandler(str(to_file), mode="w", encoding="utf-8"))

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for sink in sinks:
        sink.setFormatter(formatter)
        sink.setLevel(threshold)
        root.addHandler(sink)
    root.setLevel(threshold)

    logging.getLogger(PACKAGE_LOGGER).setLevel(threshold)


# ----------------------------------------
# Text helpers
# ----------------------------------------

def indent_lines(text: str, prefix: str = "    ") -> str:
    return textwrap.indent(text, prefix)


def comment_lines(comments: Optional[str]) -> List[str]:
    """
    Turn a free-form doc comment into C++ comment lines. Lines that already
    look like comments are kept; the rest get a `///` prefix.
    """
    if not comments:
        return []
    out: List[str] = []
    for raw in comments.strip("\n").splitlines():
        line = raw.strip()
        if line.startswith(("//", "/*", "*")):
            out.append(line)
        elif line:
            out.append(f"/// {line}")
        else:
            out.append("///")
    return out


def splice_before_marker(text: str, marker: str, lines: Sequence[str]) -> str:
    """
    Insert `lines` immediately before the first occurrence of `marker`.

    Raises ValueError when the marker does not occur in `text`.
    """
    idx = text.find(marker)
    if idx < 0:
        raise ValueError(f"marker {marker!r} not found")
    # Keep the marker at the start of its own line.
    line_start = text.rfind("\n", 0, idx) + 1
    if text[line_start:idx].strip():
        line_start = idx
    block = "".join(f"{ln}\n" for ln in lines)
    if lines:
        block += "\n"
    return text[:line_start] + block + text[line_start:]


# ----------------------------------------
# Templates
# ----------------------------------------

def _package_templates() -> Any:
    try:
        return PackageLoader(PACKAGE_LOGGER, "templates")
    except ValueError:
        # Source checkouts without package metadata.
        return FileSystemLoader(str(Path(__file__).parent / "templates"))


class TemplateRenderer:
    """
    Renders the wrapper templates. A template found in `templates_dir` wins
    over the packaged one with the same name, so single files can be
    overridden.
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        search: List[Any] = []
        if templates_dir:
            user_dir = Path(templates_dir)
            if user_dir.is_dir():
                search.append(FileSystemLoader(str(user_dir)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", user_dir)
        search.append(_package_templates())

        self.env = Environment(
            loader=ChoiceLoader(search),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["posix_path"] = lambda p: Path(p).as_posix()

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


# ----------------------------------------
# Output files
# ----------------------------------------

def _to_lf(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _current_text(path: Path, encoding: str) -> Optional[str]:
    try:
        return _to_lf(path.read_text(encoding=encoding))
    except FileNotFoundError:
        return None


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8", mode: Optional[int] = 0o644) -> bool:
    """
    Replace `path` with `content` (LF line endings) through a temporary file
    in the same directory, creating parent directories as needed.

    Returns False without touching the file when it already holds `content`.
    """
    path = Path(path)
    content = _to_lf(content)
    if _current_text(path, encoding) == content:
        logger.debug("Unchanged, not rewriting %s", path)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, staging = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as out:
            out.write(content)
        if mode is not None:
            os.chmod(staging, mode)
        os.replace(staging, path)
    except BaseException:
        if os.path.exists(staging):
            os.remove(staging)
        raise
    logger.info("Wrote %s", path)
    return True


def write_text(path: Path, content: str, dry_run: bool = False) -> bool:
    """Write one generated file, or only log it when `dry_run` is set."""
    if dry_run:
        logger.info("Would write %s (dry run)", path)
        return False
    return atomic_write_text(path, content)


# ----------------------------------------
# Formatting
# ----------------------------------------

def run_clang_format(paths: Sequence[Path], binary: str = "clang-format", style: str = "Google") -> Optional[str]:
    """
    Format `paths` in place. Returns None on success, otherwise a description of
    what went wrong; this never raises.
    """
    exe = shutil.which(binary)
    if exe is None:
        return f"{binary} not found on PATH"
    cmd = [exe, f"--style={style}", "-i"] + [str(p) for p in paths]
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        return f"failed to run {binary}: {e}"
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip()
        return f"{binary} exited with status {proc.returncode}" + (f": {detail}" if detail else "")
    return None


__all__ = [
    "TemplateRenderer",
    "configure_logging",
    "indent_lines",
    "comment_lines",
    "splice_before_marker",
    "atomic_write_text",
    "write_text",
    "run_clang_format",
]
