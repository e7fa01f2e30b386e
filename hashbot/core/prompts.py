"""Prompt rewriting helpers for retries and fallback strategies."""

import re

_MIN_SIMPLIFIED_LENGTH = 10

_STYLE_RE = re.compile(r"\b(in the style of|בסגנון|כמו|like)\s+.+?(,|\.|$)", re.IGNORECASE)
_BACKGROUND_RE = re.compile(
    r"\b(with (a |an )?background|ברקע|עם רקע)\s+.+?(,|\.|$)", re.IGNORECASE
)
_ATMOSPHERE_RE = re.compile(
    r"\b(lighting|תאורה|אווירה|atmosphere):?\s+.+?(,|\.|$)", re.IGNORECASE
)
_WHITESPACE_RE = re.compile(r"\s+")


def simplify_prompt(prompt: str) -> str:
    """Drop style, background and lighting clauses.

    Returns the original prompt when too little would remain.
    """
    if not prompt:
        return prompt
    simplified = _STYLE_RE.sub("", prompt)
    simplified = _BACKGROUND_RE.sub("", simplified)
    simplified = _ATMOSPHERE_RE.sub("", simplified)
    simplified = _WHITESPACE_RE.sub(" ", simplified).strip()
    if len(simplified) < _MIN_SIMPLIFIED_LENGTH:
        return prompt
    return simplified


def append_modifications(base: str | None, modifications: str | None) -> str:
    base = (base or "").strip()
    if not modifications:
        return base
    return f"{base} {modifications}".strip() if base else modifications.strip()
