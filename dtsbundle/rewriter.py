"""Import path rewriting for the emitted declaration bundle.

The rules run in order over the whole text; later rules clean up what the
earlier ones produce. Every rule skips text it already rewrote, so running
the sequence twice gives the same result as running it once.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from .config import BundleSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewriteRule:
    name: str
    pattern: Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def build_rules(settings: BundleSettings) -> List[RewriteRule]:
    package = re.escape(settings.package_name)
    root = re.escape(settings.root_declaration)
    source = re.escape(settings.source_dir)
    # Specifier already rooted at the package. The name must not run on into
    # a longer segment such as ``ace-code.d`` or ``ace-codex``.
    rooted = rf"{package}(?![\w.-])"
    prefix = settings.package_name.replace("\\", "\\\\") + "/"

    return [
        RewriteRule(
            "module-specifiers",
            re.compile(rf'(declare module ")(?!{rooted})'),
            rf"\g<1>{prefix}",
        ),
        RewriteRule(
            "root-declaration-imports",
            re.compile(rf'(import\(")(?:{root})("\))'),
            rf"\g<1>{settings.alias_import_path}\g<2>",
        ),
        RewriteRule(
            "require-specifiers",
            re.compile(rf'(require\(")(?!\.|{rooted})'),
            rf"\g<1>{prefix}",
        ),
        RewriteRule(
            "import-specifiers",
            re.compile(rf'(import\(")(?!\.|{rooted})'),
            rf"\g<1>{prefix}",
        ),
        RewriteRule(
            "parent-segments",
            re.compile(r"(?:\.\./){2,}"),
            "../",
        ),
        RewriteRule(
            "source-layout",
            # ``src/ace/src/ace`` collapses in a single match.
            re.compile(rf"{package}(?:/{source}/{root})+(?![\w.-])"),
            settings.package_name.replace("\\", "\\\\"),
        ),
    ]


class ImportPathRewriter:
    def __init__(self, settings: Optional[BundleSettings] = None) -> None:
        self.settings = settings or BundleSettings()
        self.rules = build_rules(self.settings)

    def rewrite(self, text: str) -> str:
        for rule in self.rules:
            updated = rule.apply(text)
            if updated != text:
                logger.debug("Rule %s rewrote the bundle", rule.name)
            text = updated
        return text


def rewrite(text: str, settings: Optional[BundleSettings] = None) -> str:
    return ImportPathRewriter(settings).rewrite(text)
