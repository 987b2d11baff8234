"""Word error rate via edit-distance alignment.

Text is tokenized to lower-case words of letters, digits and
apostrophes. The alignment is a unit-cost Levenshtein table with a
backtrace; on equal-cost cells the operation is chosen in the fixed
order substitution/match, deletion, insertion, which decides the S/D/I
breakdown reported for ties.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

_NON_TOKEN = re.compile(r"[^a-z0-9'\s]+")

_MATCH = "M"
_SUB = "S"
_DEL = "D"
_INS = "I"


def tokenize(text: str | None) -> list[str]:
    """Lower-case text and split it into word tokens.

    Anything other than a-z, 0-9, apostrophe or whitespace becomes a
    space. Empty or None input gives an empty list.
    """
    if not text:
        return []
    return _NON_TOKEN.sub(" ", text.lower()).split()


@dataclass(frozen=True)
class ErrorReport:
    """Alignment counts; reference_length = substitutions + deletions + matches."""

    substitutions: int = 0
    deletions: int = 0
    insertions: int = 0
    matches: int = 0
    reference_length: int = 0

    @property
    def errors(self) -> int:
        return self.substitutions + self.deletions + self.insertions

    @property
    def wer(self) -> float:
        """(S + D + I) / N, or 0.0 when the reference is empty."""
        if self.reference_length == 0:
            return 0.0
        return self.errors / self.reference_length


def _build_backtrace(ref: Sequence[str], hyp: Sequence[str]) -> list[list[str]]:
    rows, cols = len(ref), len(hyp)
    cost = [[0] * (cols + 1) for _ in range(rows + 1)]
    ops = [[""] * (cols + 1) for _ in range(rows + 1)]

    for i in range(1, rows + 1):
        cost[i][0] = i
        ops[i][0] = _DEL
    for j in range(1, cols + 1):
        cost[0][j] = j
        ops[0][j] = _INS

    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            sub_cost = 0 if ref[i - 1] == hyp[j - 1] else 1
            cand_sub = cost[i - 1][j - 1] + sub_cost
            cand_del = cost[i - 1][j] + 1
            cand_ins = cost[i][j - 1] + 1
            best = min(cand_sub, cand_del, cand_ins)
            cost[i][j] = best
            if best == cand_sub:
                ops[i][j] = _SUB if sub_cost else _MATCH
            elif best == cand_del:
                ops[i][j] = _DEL
            else:
                ops[i][j] = _INS
    return ops


def align(ref_tokens: Sequence[str], hyp_tokens: Sequence[str]) -> ErrorReport:
    """Align hypothesis tokens against reference tokens and count operations."""
    ops = _build_backtrace(ref_tokens, hyp_tokens)
    counts = {_MATCH: 0, _SUB: 0, _DEL: 0, _INS: 0}

    i, j = len(ref_tokens), len(hyp_tokens)
    while i > 0 or j > 0:
        op = ops[i][j]
        counts[op] += 1
        if op in (_MATCH, _SUB):
            i -= 1
            j -= 1
        elif op == _DEL:
            i -= 1
        else:
            j -= 1

    return ErrorReport(
        substitutions=counts[_SUB],
        deletions=counts[_DEL],
        insertions=counts[_INS],
        matches=counts[_MATCH],
        reference_length=len(ref_tokens),
    )


def word_error_rate(reference: str, hypothesis: str) -> ErrorReport:
    """Tokenize both texts and align them."""
    return align(tokenize(reference), tokenize(hypothesis))
