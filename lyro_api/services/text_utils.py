"""Text normalization and structured extraction for chat input.

Every extractor returns ``None`` when nothing usable is found, never an empty string.
"""

import re
import unicodedata
from typing import Iterator, Optional, Sequence

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9+\-\s]")
_WHITESPACE = re.compile(r"\s+")

ORDER_CODE_PATTERN = re.compile(r"(?<!\d)(\d{4})(?!\d)")
# Digit groups joined by exactly one space or hyphen.
PHONE_RUN_PATTERN = re.compile(r"\+?\d+(?:[\s\-]\d+)*")
PHONE_MIN_DIGITS = 7
PHONE_MAX_DIGITS = 15
PHONE_GROUP_MIN_DIGITS = 2


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_for_matching(text: Optional[str]) -> str:
    """Lowercase, drop accents and punctuation (keeping + and -), collapse spaces."""
    if not text:
        return ""

    normalized = strip_diacritics(text.casefold())
    normalized = _DISALLOWED_CHARS.sub(" ", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip()


def is_blank(text: Optional[str]) -> bool:
    return not text or not text.strip()


def digits_only(text: str) -> str:
    return re.sub(r"\D", "", text or "")


def extract_order_code(text: str) -> Optional[str]:
    match = ORDER_CODE_PATTERN.search(text or "")
    return match.group(1) if match else None


def _phone_candidates(run: str) -> Iterator[str]:
    """Join neighbouring digit groups into numbers of plausible length.

    A group that is a whole number by itself, or a single digit, is never
    merged with its neighbours.
    """
    groups = re.split(r"[\s\-]", run)
    for start in range(len(groups)):
        lead_digits = len(digits_only(groups[start]))
        joined = ""
        best = None
        for offset, group in enumerate(groups[start:]):
            group_digits = len(digits_only(group))
            if offset and (
                lead_digits >= PHONE_MIN_DIGITS
                or group_digits >= PHONE_MIN_DIGITS
                or group_digits < PHONE_GROUP_MIN_DIGITS
            ):
                break
            joined += group
            total = len(digits_only(joined))
            if total > PHONE_MAX_DIGITS:
                break
            if total >= PHONE_MIN_DIGITS:
                best = joined
        if best is not None:
            yield best


def extract_phone(text: str) -> Optional[str]:
    """Find the first phone-like number: +593..., 09..., or bare digits."""
    for match in PHONE_RUN_PATTERN.finditer(text or ""):
        for candidate in _phone_candidates(match.group(0)):
            return candidate
    return None


def phone_variants(phone: str) -> list[str]:
    """Lookup keys in the order they are tried: raw, digits only, last nine digits."""
    variants: list[str] = []
    digits = digits_only(phone)
    for variant in (phone.strip(), digits, digits[-9:]):
        if variant and variant not in variants:
            variants.append(variant)
    return variants


def extract_letter_choice(text: str, option_count: int) -> Optional[int]:
    """Map a lone letter ("b", "B)") to a zero-based option index."""
    normalized = normalize_for_matching(text)
    if len(normalized) != 1 or not normalized.isalpha():
        return None
    index = ord(normalized) - ord("a")
    if 0 <= index < option_count:
        return index
    return None


def extract_full_name(text: str) -> Optional[str]:
    name = _WHITESPACE.sub(" ", (text or "").strip())
    if len(name) < 2 or not any(ch.isalpha() for ch in name):
        return None
    return name


def option_letters(count: int) -> Sequence[str]:
    return [chr(ord("A") + i) for i in range(count)]


def preview(text: str, limit: int = 120) -> str:
    text = _WHITESPACE.sub(" ", (text or "").strip())
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"
