"""
Utilities for cleaning LLM replies before they are sent to a chat.
"""

import re

_CITATION_MARKER = re.compile(r'\[\d+\]')
_SPACE_BEFORE_PUNCTUATION = re.compile(r'\s+([,.!?])')


def clean_model_response(response: str) -> str:
    """Remove citation markers like [1] and the space they leave before punctuation.

    Args:
        response: Raw model reply

    Returns:
        Cleaned reply
    """
    response = _CITATION_MARKER.sub('', response)
    response = _SPACE_BEFORE_PUNCTUATION.sub(r'\1', response)
    return response.strip()
