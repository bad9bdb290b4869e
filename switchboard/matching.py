"""Command-name normalization and fuzzy similarity.

``normalize`` turns a raw token into the canonical key the registry
indexes by. Digits are transliterated to letters first so lookalike
input such as ``p1ng`` lands on the same key as ``pang``.

``similarity`` is a Jaro-Winkler score between two canonical keys. It is
never used to resolve a command, only to offer a "did you mean" hint
after an exact lookup has failed.
"""

import re
from typing import Iterable, Optional

# 1-based digit -> letter positions. Non-ASCII targets (4 -> ç, 9 -> ğ)
# are stripped again by the ASCII filter below.
ALPHABET = "abcçdefgğhıijklmnoöprsştuüvyz"

WINKLER_SCALE = 0.1
WINKLER_PREFIX_CAP = 4

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def transliterate(text: Optional[str]) -> str:
    """Replace each digit 1-9 with the alphabet letter at that position."""
    if not text:
        return ""
    out = []
    for char in text:
        if "0" <= char <= "9":
            position = int(char)
            if 1 <= position <= len(ALPHABET):
                out.append(ALPHABET[position - 1])
                continue
        out.append(char)
    return "".join(out)


def normalize(text: Optional[str]) -> str:
    """Return the canonical comparison key for ``text``."""
    if not text:
        return ""
    return _NON_ALNUM.sub("", transliterate(text).lower())


def similarity(s1: Optional[str], s2: Optional[str]) -> float:
    """Jaro-Winkler similarity between two strings, in [0, 1]."""
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0

    len1, len2 = len(s1), len(s2)
    window = max(0, max(len1, len2) // 2 - 1)

    matched1 = [False] * len1
    matched2 = [False] * len2
    matches = 0
    for i in range(len1):
        start = max(0, i - window)
        end = min(i + window + 1, len2)
        for j in range(start, end):
            if not matched2[j] and s1[i] == s2[j]:
                matched1[i] = matched2[j] = True
                matches += 1
                break

    if matches == 0:
        return 0.0

    # Walk both match lists in order; each mismatch is half a transposition.
    half_transpositions = 0
    j = 0
    for i in range(len1):
        if matched1[i]:
            while not matched2[j]:
                j += 1
            if s1[i] != s2[j]:
                half_transpositions += 1
            j += 1
    transpositions = half_transpositions / 2

    jaro = (
        matches / len1
        + matches / len2
        + (matches - transpositions) / matches
    ) / 3

    prefix = 0
    while (
        prefix < WINKLER_PREFIX_CAP
        and prefix < len1
        and prefix < len2
        and s1[prefix] == s2[prefix]
    ):
        prefix += 1

    return jaro + prefix * WINKLER_SCALE * (1 - jaro)


def suggest(
    token: str, candidates: Iterable[str], threshold: float
) -> Optional[str]:
    """Return the candidate closest to ``token`` if it clears ``threshold``.

    Both sides are compared by canonical key. Ties keep the first
    candidate seen, so callers should pass candidates in a stable order.
    """
    key = normalize(token)
    if not key:
        return None
    best: Optional[str] = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity(key, normalize(candidate))
        if score > best_score:
            best, best_score = candidate, score
    if best is not None and best_score >= threshold:
        return best
    return None
