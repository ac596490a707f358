from __future__ import annotations

import re
import unicodedata


def name_sort_key(name: str | None) -> tuple[str, str]:
    """
    Locale-aware ordering key for display names.

    Accents and case are folded for the primary comparison ("Émber" sorts
    with "ember"); the raw name breaks ties so the order stays total.
    """
    raw = name or ""
    decomposed = unicodedata.normalize("NFKD", raw)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, raw


def build_code_from_name(name: str, used_codes, *, fallback: str) -> str:
    """
    Suggest an uppercase code from a display name.

    Takes the first three letters of each ASCII word, joined with "-" and
    capped at 16 characters ("Buku Catatan A5" -> "BUK-CAT-A5"). On
    collision a serial suffix is appended: "-2", "-3", ...
    """
    normalized = unicodedata.normalize("NFKD", (name or "").strip())
    normalized = normalized.encode("ascii", "ignore").decode("ascii").upper()
    normalized = re.sub(r"[^A-Z0-9\s]", " ", normalized)
    tokens = normalized.split()

    base = "-".join(token[:3] for token in tokens)[:16] if tokens else fallback
    used = {str(code).strip().upper() for code in used_codes}

    if base not in used:
        return base

    serial = 2
    candidate = f"{base}-{serial}"
    while candidate in used:
        serial += 1
        candidate = f"{base}-{serial}"
    return candidate
