"""Tests for token counting and message validation."""

from unittest.mock import Mock

import pytest

from numera.config import AgentConfig
from scripted_completion import ScriptedTurn


class TestTokenCounter:
    """Tests for token estimation."""

    @pytest.fixture
    def counter(self, token_counter):
        """Token counter with a mocked tokenizer for consistent testing."""
        token_counter.tokenizer = Mock()
        return token_counter

    def test_validate_within_limit(self, counter):
        """Test that messages within token limit pass validation."""
        counter.tokenizer.encode.return_value = ["token"] * 500

        # Should not raise exception
        counter.validate("Short message", 1000)

    def test_validate_exceeds_limit(self, counter):
        """Test that messages exceeding token limit raise ValueError."""
        counter.tokenizer.encode.return_value = ["token"] * 1500

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            counter.validate("Very long message", 1000)

    def test_fallback_without_tokenizer(self, counter):
        """Test token validation fallback when tokenizer is unavailable."""
        counter.tokenizer = None

        # Short message (under 4000 chars = ~1000 tokens) should pass
        counter.validate("a" * 3000, 1000)

        # Long message (over 4000 chars = ~1000 tokens) should fail
        with pytest.raises(ValueError, match="Message exceeds token limit"):
            counter.validate("a" * 5000, 1000)

    def test_fallback_when_tokenizer_fails(self, counter):
        """Test that encoding errors fall back to the character estimate."""
        counter.tokenizer.encode.side_effect = ValueError("disallowed special token")

        assert counter.count("a" * 400) == 100

    def test_empty_text(self, counter):
        """Test that empty text has no tokens."""
        assert counter.count("") == 0
        counter.tokenizer.encode.assert_not_called()


class TestConversationServiceValidation:
    """Tests for conversation service message validation."""

    @pytest.fixture
    def conversation_service(self, make_service):
        """Create ConversationService with a small token limit."""
        return make_service([ScriptedTurn(text="AI response")], config=AgentConfig(max_message_tokens=50))

    def test_validate_empty_message(self, conversation_service):
        """Test that blank messages are rejected."""
        with pytest.raises(ValueError, match="Message cannot be empty"):
            conversation_service.validate_message(" \n ")

    def test_validate_long_message(self, conversation_service):
        """Test that the token limit error is user-facing."""
        with pytest.raises(ValueError, match="Your message is too long. Please keep messages under 50 tokens."):
            conversation_service.validate_message("a" * 400)

    @pytest.mark.asyncio
    async def test_run_validates_tokens(self, conversation_service):
        """Test that run rejects the message before any model call."""
        with pytest.raises(ValueError, match="Your message is too long"):
            await conversation_service.run([], "a" * 400)

        assert conversation_service.completion_service.call_count == 0

    @pytest.mark.asyncio
    async def test_run_valid_message_proceeds(self, conversation_service):
        """Test that valid messages proceed to processing."""
        conversation = await conversation_service.run([], "Valid message")

        assert conversation.final_text == "AI response"
        assert conversation_service.completion_service.call_count == 1

    def test_stream_validates_eagerly(self, conversation_service):
        """Test that stream raises before returning an event iterator."""
        with pytest.raises(ValueError, match="Message cannot be empty"):
            conversation_service.stream([], "")


if __name__ == "__main__":
    pytest.main([__file__])
