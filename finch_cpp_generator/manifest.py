"""
manifest.json: a record of one generator run (inputs, environment and the
files produced), written next to the generated headers.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import shlex
import sys
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .errors import ArtifactError
from .models import GenerationContext, ModuleInfo
from .utils import write_text

logger = logging.getLogger(__name__)

DIST_NAME = "finch-cpp-generator"
MANIFEST_NAME = "manifest.json"


def generator_version() -> str:
    """
    Installed distribution version, falling back to the package's __version__.
    """
    try:
        return importlib_metadata.version(DIST_NAME)
    except importlib_metadata.PackageNotFoundError:
        from . import __version__
        return __version__


def _host() -> Dict[str, str]:
    return {
        "python": sys.version.split()[0],
        "interpreter": sys.executable,
        "platform": platform.platform(),
        "cwd": os.getcwd(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def build_manifest(
    ctx: GenerationContext,
    module: ModuleInfo,
    instantiations: Iterable[str] = (),
    written: Iterable[Path] = (),
) -> Dict[str, Any]:
    argv = list(sys.argv or [])
    return {
        "generator": {"name": DIST_NAME, "version": generator_version()},
        "invocation": {"argv": argv, "command_line": shlex.join(argv)},
        "environment": _host(),
        "context": ctx.to_dict(),
        "package": module.package,
        "namespace": module.namespace,
        "class_count": len(module),
        "classes": [c.to_dict() for c in module],
        "instantiations": list(instantiations),
        "written": [str(p) for p in written],
    }


def emit_manifest(
    ctx: GenerationContext,
    module: ModuleInfo,
    instantiations: Iterable[str] = (),
    written: Iterable[Path] = (),
) -> Optional[Path]:
    """
    Write manifest.json into the output directory. Returns its path, or None
    on dry runs.
    """
    path = ctx.output_dir / MANIFEST_NAME
    body = json.dumps(build_manifest(ctx, module, instantiations, written), indent=2) + "\n"
    try:
        write_text(path, body, dry_run=ctx.dry_run)
    except OSError as e:
        raise ArtifactError(path, "Failed to write manifest") from e
    if ctx.dry_run:
        return None
    logger.debug("Manifest: %s", path)
    return path
