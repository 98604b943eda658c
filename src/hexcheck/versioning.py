"""
Lenient version ordering.

Versions are reduced to the sequence of integers found in them, so
``"1.2.3-rc1"`` reads as ``[1, 2, 3, 1]``. Pre-release tags and build
metadata carry no special precedence; ``1.2.3-rc1`` therefore sorts after
``1.2.3``. This is intentionally looser than SemVer.
"""

import re
from itertools import zip_longest
from typing import List

_DIGIT_RUN = re.compile(r"\d+")


def version_segments(version: str) -> List[int]:
    """Return every maximal run of digits in ``version`` as integers, in order."""
    return [int(part) for part in _DIGIT_RUN.findall(version or "")]


def is_newer(current: str, candidate: str) -> bool:
    """
    Check whether ``candidate`` is strictly greater than ``current``.

    Missing trailing segments count as zero, so ``"1.0"`` equals ``"1.0.0"``
    and is not newer than it.
    """
    for ours, theirs in zip_longest(
        version_segments(current), version_segments(candidate), fillvalue=0
    ):
        if ours < theirs:
            return True
        if ours > theirs:
            return False
    return False
