"""Token estimation shared by request validation and rate limiting."""

import tiktoken

from numera.utils.logging import get_logger

logger = get_logger(__name__)


class TokenCounter:
    """Approximate token counter.

    Uses a tiktoken encoding as a close approximation for Claude and falls back
    to roughly four characters per token when no encoding is available.
    """

    def __init__(self, encoding_model: str = "gpt-4"):
        self.tokenizer: tiktoken.Encoding | None
        try:
            self.tokenizer = tiktoken.encoding_for_model(encoding_model)
        except Exception as e:
            logger.warning(f"Tokenizer unavailable ({e}), falling back to character estimate")
            self.tokenizer = None

    def count(self, text: str) -> int:
        """Estimate the number of tokens in ``text``."""
        if not text:
            return 0
        try:
            return len(self.tokenizer.encode(text)) if self.tokenizer else len(text) // 4
        except Exception:
            return len(text) // 4

    def validate(self, text: str, max_tokens: int) -> None:
        """Raise ValueError if ``text`` exceeds ``max_tokens``."""
        token_count = self.count(text)
        if token_count > max_tokens:
            raise ValueError(f"Message exceeds token limit: {token_count} tokens > {max_tokens} limit")


_token_counter: TokenCounter | None = None


def get_token_counter() -> TokenCounter:
    """Get or create the shared token counter."""
    global _token_counter
    if _token_counter is None:
        _token_counter = TokenCounter()
    return _token_counter
