"""
Token estimation for the generated document.
"""

from __future__ import annotations

from typing import Optional, Protocol

import tiktoken

DEFAULT_MODEL = "gpt-4"


class TokenEstimator(Protocol):
    def estimate(self, text: str) -> int: ...


class TiktokenEstimator:
    """Count tokens with the BPE vocabulary ``tiktoken`` uses for *model*.

    The encoding is loaded on first use (tiktoken may need to fetch it) and
    cached on the instance. Special-token strings in *text* are counted as
    ordinary text.
    """

    def __init__(self, model: str = DEFAULT_MODEL) -> None:
        self.model = model
        self._encoding: Optional["tiktoken.Encoding"] = None

    def load(self) -> "tiktoken.Encoding":
        if self._encoding is None:
            self._encoding = tiktoken.encoding_for_model(self.model)
        return self._encoding

    def estimate(self, text: str) -> int:
        return len(self.load().encode(text, disallowed_special=()))


class CharRatioEstimator:
    """Approximate count: one token per *chars_per_token* characters.

    Off by roughly 25% either way on typical source code.
    """

    def __init__(self, chars_per_token: int = 4) -> None:
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return -(-len(text) // self.chars_per_token)


def format_token_count(count: int) -> str:
    if count < 1000:
        return str(count)
    return f"{count / 1000:.1f}k"
