"""
Unit tests for semantic_memory/llm/openai_client.py

Tests OpenAI provider with mocked AsyncOpenAI client.
"""

from unittest.mock import AsyncMock

import pytest

from semantic_memory.llm.base import LLMResponse


class TestOpenAIProvider:
    """Tests for OpenAIProvider class."""

    def test_init(self):
        """Test provider initialization."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key", model="gpt-4o")

        assert provider._api_key == "test-key"
        assert provider._model == "gpt-4o"
        assert provider._client is None  # Lazy loaded

    def test_provider_name(self):
        """Test provider name property."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")
        assert provider.provider_name == "OpenAI"

    def test_is_configured(self):
        """Test is_configured follows the API key."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        assert OpenAIProvider(api_key="test-key").is_configured() is True
        assert OpenAIProvider(api_key="").is_configured() is False

    def test_get_client_reuses_client(self, mock_openai):
        """Test that _get_client creates the client once."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")
        client1 = provider._get_client()
        client2 = provider._get_client()

        assert client1 is client2
        mock_openai.assert_called_once_with(api_key="test-key")

    @pytest.mark.asyncio
    async def test_generate_with_prompt(self, mock_openai):
        """Test generating response with simple prompt."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")

        response = await provider.generate(
            prompt="What is 2+2?",
            temperature=0.5,
            max_tokens=100,
        )

        assert isinstance(response, LLMResponse)
        assert "test response" in response.content.lower()
        assert response.model == "gpt-4o"

        call_kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert call_kwargs["messages"] == [{"role": "user", "content": "What is 2+2?"}]
        assert call_kwargs["temperature"] == 0.5
        assert call_kwargs["max_tokens"] == 100

    @pytest.mark.asyncio
    async def test_generate_with_messages(self, mock_openai):
        """Test a conversation window is sent unchanged."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")

        messages = [
            {"role": "system", "content": "You are bri."},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there!"},
            {"role": "user", "content": "How are you?"},
        ]

        await provider.generate(messages=messages)

        call_kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert call_kwargs["messages"] == messages

    @pytest.mark.asyncio
    async def test_generate_with_system_prompt(self, mock_openai):
        """Test generating response with system prompt."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")

        await provider.generate(
            prompt="Summarize this.",
            system_prompt="You are a helpful assistant.",
        )

        call_kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        messages = call_kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "You are a helpful assistant."}
        assert messages[1] == {"role": "user", "content": "Summarize this."}

    @pytest.mark.asyncio
    async def test_generate_system_prompt_not_duplicated(self, mock_openai):
        """Test that system prompt isn't duplicated if already in messages."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")

        messages = [
            {"role": "system", "content": "Existing system prompt."},
            {"role": "user", "content": "Hello"},
        ]

        await provider.generate(
            messages=messages,
            system_prompt="New system prompt",  # Should be ignored
        )

        call_kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        system_messages = [m for m in call_kwargs["messages"] if m["role"] == "system"]
        assert len(system_messages) == 1
        assert system_messages[0]["content"] == "Existing system prompt."

    @pytest.mark.asyncio
    async def test_caller_messages_not_mutated(self, mock_openai):
        """Test the caller's message list is left untouched."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")
        messages = [{"role": "user", "content": "Hello"}]

        await provider.generate(messages=messages, prompt="Again", system_prompt="Be nice.")

        assert messages == [{"role": "user", "content": "Hello"}]

    @pytest.mark.asyncio
    async def test_generate_usage_tracking(self, mock_openai):
        """Test that usage metadata is tracked."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key")
        response = await provider.generate(prompt="Test")

        assert response.usage == {
            "prompt_tokens": 100,
            "completion_tokens": 50,
            "total_tokens": 150,
        }
        assert response.token_count == 150

    @pytest.mark.asyncio
    async def test_generate_handles_api_error(self, mock_openai):
        """Test that API errors are propagated."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        mock_client = mock_openai.return_value
        mock_client.chat.completions.create = AsyncMock(
            side_effect=Exception("API Error")
        )

        provider = OpenAIProvider(api_key="test-key")

        with pytest.raises(Exception, match="API Error"):
            await provider.generate(prompt="Test")

    @pytest.mark.asyncio
    async def test_model_passed(self, mock_openai):
        """Test that model is passed correctly."""
        from semantic_memory.llm.openai_client import OpenAIProvider

        provider = OpenAIProvider(api_key="test-key", model="gpt-4o-mini")
        await provider.generate(prompt="Test")

        call_kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o-mini"
