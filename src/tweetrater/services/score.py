"""Rating token extraction."""

import re
from typing import Optional

SCORE_PATTERN = re.compile(r"SCORE_(\d+)")


def extract_score(text: Optional[str]) -> Optional[int]:
    """
    Find the first SCORE_<digits> token in text.

    Matching is case-sensitive and the first occurrence wins. Absence is
    never final during streaming: call again on every accumulated update.

    Args:
        text: Accumulated model output

    Returns:
        Parsed integer score, or None if no token is present

    Example:
        >>> extract_score("Thoughtful thread.\\nSCORE_7")
        7
        >>> extract_score("score_7") is None
        True
    """
    if not text:
        return None
    match = SCORE_PATTERN.search(text)
    if match is None:
        return None
    return int(match.group(1))
