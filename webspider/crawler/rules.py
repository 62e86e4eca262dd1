"""
Accept/reject rule sets used for URL admission.
"""

import re
from typing import Any, Iterable, List, Optional


def match_pattern(pattern: Any, value: Any) -> bool:
    """
    Test a single pattern against a value.

    Supported patterns:
        callable          -- predicate, called with the value
        compiled regex    -- searched in the string form of the value
        set / frozenset   -- membership test
        anything else     -- equality
    """
    if isinstance(pattern, re.Pattern):
        text = '' if value is None else str(value)
        return pattern.search(text) is not None

    if isinstance(pattern, (set, frozenset)):
        return value in pattern

    if callable(pattern):
        return bool(pattern(value))

    return pattern == value


class Rules:
    """
    A pair of ordered pattern lists applied to one URL attribute.

    A value is accepted when it matches at least one accept pattern (an empty
    accept list matches everything) and matches none of the reject patterns.
    """

    def __init__(self, accept: Optional[Iterable[Any]] = None,
                 reject: Optional[Iterable[Any]] = None):
        self.accept: List[Any] = list(accept or [])
        self.reject: List[Any] = list(reject or [])

    def accepts(self, value: Any) -> bool:
        """Return True if the value passes this rule set."""
        if self.accept and not any(match_pattern(p, value) for p in self.accept):
            return False

        return not any(match_pattern(p, value) for p in self.reject)

    def accept_like(self, pattern: Any) -> 'Rules':
        self.accept.append(pattern)
        return self

    def reject_like(self, pattern: Any) -> 'Rules':
        self.reject.append(pattern)
        return self

    def __repr__(self) -> str:
        return f"Rules(accept={self.accept!r}, reject={self.reject!r})"
