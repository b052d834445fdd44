"""Keep-or-drop decisions for class heritage references."""

from __future__ import annotations

import logging
from typing import Collection, Iterable, Optional

from .models import Diagnostic, TypeReference
from .oracle import TypeOracle, type_to_string

logger = logging.getLogger(__name__)

DEFAULT_HERITAGE_CODES = (2507, 1174)


def keep(
    ref: TypeReference,
    diagnostics: Iterable[Diagnostic],
    oracle: TypeOracle,
    source_file: Optional[str],
    codes: Collection[int] = DEFAULT_HERITAGE_CODES,
) -> bool:
    """Decide whether a heritage type reference survives into the bundle.

    The checks run in order and the first match drops the reference:

    1. a diagnostic with one of *codes*, reported for *source_file*, overlaps
       the reference's span;
    2. the reference resolves to a symbol whose declared type is the
       undefined type or an error type.

    A reference the oracle cannot resolve is kept: the symbol may live
    outside the compiled program, and dropping a valid external base is
    worse than keeping a broken one.
    """
    if ref.span is not None:
        for diagnostic in diagnostics:
            if (
                diagnostic.code in codes
                and diagnostic.file == source_file
                and diagnostic.overlaps(ref.span)
            ):
                logger.debug("Dropping %s: diagnostic %d overlaps it", ref, diagnostic.code)
                return False

    symbol = oracle.resolve_symbol(ref)
    if symbol is None:
        return True

    declared = oracle.declared_type(symbol)
    if oracle.is_undefined_type(declared) or oracle.is_error_type(declared):
        logger.debug("Dropping %s: %s has declared type %s", ref, symbol.name, type_to_string(declared))
        return False
    return True
