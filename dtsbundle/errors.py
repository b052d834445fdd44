"""Fatal error types raised by the bundling pipeline."""

from __future__ import annotations

from typing import Optional


class DtsBundleError(Exception):
    """Base class for errors that abort a bundling run."""


class ConfigResolutionError(DtsBundleError):
    """The build or tool configuration could not be located or read."""


class CompilerInvocationError(DtsBundleError):
    """The TypeScript compiler could not be run or exited with an error."""


class ParserUnavailableError(DtsBundleError):
    """tree-sitter or the TypeScript grammar package is not installed."""


class DeclarationIOError(DtsBundleError):
    """A declaration file could not be read, decoded or written."""


class FragmentParseError(DtsBundleError):
    """A synthesized interface fragment failed to re-parse."""

    def __init__(self, message: str, fragment: str = "", module: Optional[str] = None) -> None:
        super().__init__(message)
        self.fragment = fragment
        self.module = module

    def __str__(self) -> str:
        base = super().__str__()
        if self.module:
            return f"{base} (module '{self.module}')"
        return base
