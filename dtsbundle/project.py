"""Build configuration lookup and declaration emission via ``tsc``."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import CompilerInvocationError, ConfigResolutionError

logger = logging.getLogger(__name__)

# tsc exit status when diagnostics were reported but files were still written.
TSC_OUTPUTS_GENERATED = 2


def locate_tsconfig(start: Path, name: str = "tsconfig.json") -> Path:
    """Walk up from *start* to the nearest build configuration file."""
    current = start.resolve()
    if current.is_file():
        return current
    for directory in [current, *current.parents]:
        candidate = directory / name
        if candidate.is_file():
            logger.debug("Using build configuration %s", candidate)
            return candidate
    raise ConfigResolutionError(f"Could not find {name} in {start} or any parent directory")


def emit_declarations(tsconfig: Path, tsc: str = "tsc", extra_args: Optional[List[str]] = None) -> None:
    """Run the TypeScript compiler to emit the raw declaration bundle."""
    executable = shutil.which(tsc)
    if executable is None:
        raise CompilerInvocationError(f"TypeScript compiler '{tsc}' not found on PATH")

    cmd = [executable, "-p", str(tsconfig), "--declaration", "--emitDeclarationOnly"]
    cmd.extend(extra_args or [])
    logger.info("Emitting declarations: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(tsconfig.parent),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise CompilerInvocationError(f"Could not run {tsc}: {exc}") from exc

    output = (proc.stdout + proc.stderr).strip()
    if proc.returncode == TSC_OUTPUTS_GENERATED:
        logger.warning("%s reported diagnostics but emitted output:\n%s", tsc, output)
    elif proc.returncode != 0:
        raise CompilerInvocationError(
            f"{tsc} exited with status {proc.returncode}" + (f":\n{output}" if output else "")
        )
