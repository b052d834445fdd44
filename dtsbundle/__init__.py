"""Post-processor that turns emitted TypeScript declarations into a publishable bundle."""

__version__ = "0.1.0"

from .collector import InterfaceCollector
from .config import BundleSettings, load_settings
from .errors import (
    CompilerInvocationError,
    ConfigResolutionError,
    DtsBundleError,
    FragmentParseError,
    ParserUnavailableError,
)
from .pipeline import BundlePipeline, BundleResult
from .rewriter import rewrite
from .transformer import transform

__all__ = [
    "__version__",
    "BundlePipeline",
    "BundleResult",
    "BundleSettings",
    "CompilerInvocationError",
    "ConfigResolutionError",
    "DtsBundleError",
    "FragmentParseError",
    "InterfaceCollector",
    "ParserUnavailableError",
    "load_settings",
    "rewrite",
    "transform",
]
