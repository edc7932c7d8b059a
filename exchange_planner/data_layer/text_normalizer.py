"""Text normalization for matching preferences, tags and keywords.

Food names and patient text arrive in Spanish with inconsistent accents and
casing ("Jamón", "jamon ", "JAMON"). Everything compared against keyword
lists or tags goes through ``normalize_text`` first.

Preference phrases match as substrings ("pollo" matches "pechuga de pollo");
food-name keyword lists match at the start of a word.
"""

import re
import unicodedata
from typing import Iterable


def normalize_text(value: str) -> str:
    """Trim, lowercase and strip diacritics."""
    decomposed = unicodedata.normalize("NFD", (value or "").strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """True if normalized ``text`` contains any of the (already normalized) keywords."""
    return any(keyword in text for keyword in keywords)


def matches_any_phrase(texts: Iterable[str], phrases: Iterable[str]) -> bool:
    """True if any normalized phrase is a substring of any normalized text.

    Blank phrases are ignored.
    """
    normalized_texts = [normalize_text(t) for t in texts]
    for phrase in phrases:
        target = normalize_text(phrase)
        if not target:
            continue
        if any(target in text for text in normalized_texts):
            return True
    return False


def contains_word_start(text: str, keywords: Iterable[str]) -> bool:
    """True if some word of normalized ``text`` starts with one of the keywords.

    "res" matches "carne de res" but not "fresa".
    """
    words = re.split(r"[^a-z0-9]+", text)
    return any(word.startswith(keyword) for word in words if word for keyword in keywords)
