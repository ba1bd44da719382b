"""
Similaridade de strings por distância de edição (Levenshtein).

Opera sobre code points Unicode (str), nunca sobre bytes UTF-8: caracteres
turcos como "ş" ou "ı" contam como um único símbolo.
"""

from __future__ import annotations

import unicodedata

# "İ".lower() produz "i" + U+0307 em Python; o portal trata-o como "i".
_TURKISH_CASE = str.maketrans({"\u0130": "i", "\u0307": None})


def fold_case(s: str) -> str:
    """Case-fold com tratamento do I pontuado turco, sem remover diacríticos."""
    if not s:
        return ""
    s = unicodedata.normalize("NFC", s).strip()
    return s.translate(_TURKISH_CASE).casefold().translate(_TURKISH_CASE)


def levenshtein_distance(a: str, b: str) -> int:
    """Distância de edição clássica (inserção/remoção/substituição custam 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur[j] = min(
                prev[j] + 1,  # remoção
                cur[j - 1] + 1,  # inserção
                prev[j - 1] + cost,  # substituição
            )
        prev = cur
    return prev[len(b)]


def similarity(a: str, b: str) -> float:
    """Similaridade normalizada em [0, 1].

    >>> similarity("İstanbul", "istanbul")
    1.0
    >>> similarity("abc", "")
    0.0
    """
    a = fold_case(a)
    b = fold_case(b)
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    max_len = max(len(a), len(b))
    return (max_len - levenshtein_distance(a, b)) / max_len
