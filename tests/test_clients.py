"""Tests for the per-request OpenAI client factory."""

from __future__ import annotations

from cardchat.src.core.clients import ClientFactory, OpenAIClientFactory


class TestOpenAIClientFactory:
    def test_is_a_client_factory(self) -> None:
        assert isinstance(OpenAIClientFactory(), ClientFactory)

    def test_embedder_uses_request_credential(self) -> None:
        factory = OpenAIClientFactory(embedding_model="text-embedding-3-small")
        embedder = factory.embedder("sk-request-1")
        assert embedder.model == "text-embedding-3-small"
        assert embedder.openai_api_key.get_secret_value() == "sk-request-1"
        assert embedder.max_retries == 0

    def test_chat_model_uses_request_credential(self) -> None:
        factory = OpenAIClientFactory(llm_model="gpt-3.5-turbo", temperature=0.7)
        llm = factory.chat_model("sk-request-2")
        assert llm.model_name == "gpt-3.5-turbo"
        assert llm.temperature == 0.7
        assert llm.openai_api_key.get_secret_value() == "sk-request-2"
        assert llm.max_retries == 0

    def test_clients_not_shared_between_credentials(self) -> None:
        factory = OpenAIClientFactory()
        first, second = factory.chat_model("sk-a"), factory.chat_model("sk-b")
        assert first is not second
        assert second.openai_api_key.get_secret_value() == "sk-b"

    def test_zero_temperature_is_kept(self) -> None:
        llm = OpenAIClientFactory(temperature=0.0).chat_model("sk-a")
        assert llm.temperature == 0.0

    def test_repr_has_no_credential(self) -> None:
        factory = OpenAIClientFactory(embedding_model="emb", llm_model="chat")
        factory.chat_model("sk-secret")
        assert repr(factory) == "OpenAIClientFactory(embedding='emb', llm='chat')"
