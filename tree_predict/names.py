"""
names.py - decomposition of lineage-encoding names.

Patronymic naming chains such as "Ahmad bin Ali bin Hassan" or
"Ahmad, son of Ali, son of Hassan" are reduced to the ordered chain
[given, father, grandfather, ...] of normalized tokens.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from unidecode import unidecode

# Arabic letter variants folded to a canonical form
_ARABIC_FOLD = str.maketrans({
    "أ": "ا",  # alef with hamza above
    "إ": "ا",  # alef with hamza below
    "آ": "ا",  # alef with madda
    "ة": "ه",  # taa marbuta -> haa
    "ى": "ي",  # alef maqsura -> yaa
})
_ARABIC_MARKS_RE = re.compile(r"[\u064B-\u0652\u0640]")  # harakat and tatweel
_ARABIC_RE = re.compile(r"[\u0600-\u06FF]")
_NON_WORD_RE = re.compile(r"[^\w]+", re.UNICODE)
_SPLIT_RE = re.compile(r"[\s,;]+")

# Tokens that link a name to the next generation; ignored unless first
CONNECTORS = frozenset({
    "bin", "ibn", "bint", "ben", "bat", "ap", "ab", "s/o", "d/o",
    "بن",              # bn
    "ابن",        # ibn
    "بنت",        # bint
})
_RELATION_WORDS = frozenset({"son", "daughter"})


def normalize_token(token: str) -> str:
    """Fold an individual name token for comparison."""
    if not token:
        return ""
    token = token.strip().translate(_ARABIC_FOLD)
    token = _ARABIC_MARKS_RE.sub("", token)
    if not _ARABIC_RE.search(token):
        token = unidecode(token)
    token = _NON_WORD_RE.sub("", token)
    return token.casefold()


@dataclass(frozen=True)
class NameChain:
    """Lineage chain of a name: tokens[0] is the given name, tokens[1] the father's, etc."""
    tokens: Tuple[str, ...] = ()

    @property
    def given(self) -> Optional[str]:
        return self.tokens[0] if self.tokens else None

    @property
    def father(self) -> Optional[str]:
        return self.tokens[1] if len(self.tokens) > 1 else None

    @property
    def grandfather(self) -> Optional[str]:
        return self.tokens[2] if len(self.tokens) > 2 else None


def decompose_name(name: Optional[str]) -> NameChain:
    """
    Split a full name into its lineage chain.

    Connectors ("bin", "ibn", "son of", ...) are dropped anywhere except in
    the first position, so a given name such as "Ben" survives.

    Args:
        name: Full name, in any script.

    Returns:
        NameChain of normalized tokens (possibly empty).
    """
    if not name:
        return NameChain()
    raw = [t for t in _SPLIT_RE.split(name.strip()) if t]
    tokens: List[str] = []
    i = 0
    while i < len(raw):
        word = raw[i].casefold()
        if tokens:
            if word in CONNECTORS or word.translate(_ARABIC_FOLD) in CONNECTORS:
                i += 1
                continue
            if word in _RELATION_WORDS and i + 1 < len(raw) and raw[i + 1].casefold() == "of":
                i += 2
                continue
        normalized = normalize_token(raw[i])
        if normalized:
            tokens.append(normalized)
        i += 1
    return NameChain(tuple(tokens))
