"""
Provider-agnostic LLM factory.

Switch LLM provider by changing env vars, no code changes needed:
  LLM_PROVIDER=gemini | openai | groq
  LLM_MODEL=gemini-2.0-flash | gpt-4o-mini | llama-3.1-70b-versatile
  LLM_API_KEY=your-key

`TextGenerator` and `Embedder` are the two seams the rest of the app talks to;
tests replace them with in-memory fakes.
"""

import logging

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from app.config import get_settings
from app.core.concurrency import run_with_timeout
from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


def create_llm(temperature: float | None = None) -> BaseChatModel:
    """Create an LLM instance based on env configuration.

    Args:
        temperature: Overrides LLM_TEMPERATURE (the router uses 0.0).

    Raises:
        ValueError: If provider is not supported.
    """
    settings = get_settings()
    temp = settings.LLM_TEMPERATURE if temperature is None else temperature

    match settings.LLM_PROVIDER:
        case "gemini":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=settings.LLM_MODEL,
                google_api_key=settings.LLM_API_KEY,
                temperature=temp,
                max_retries=settings.LLM_MAX_RETRIES,
            )

        case "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=temp,
                max_retries=settings.LLM_MAX_RETRIES,
            )

        case "groq":
            from langchain_groq import ChatGroq

            return ChatGroq(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=temp,
                max_retries=settings.LLM_MAX_RETRIES,
            )

        case _:
            raise ValueError(
                f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. "
                f"Supported: gemini, openai, groq"
            )


def create_embeddings() -> Embeddings:
    """Create an embedding model based on env configuration."""
    settings = get_settings()

    match settings.EMBEDDING_PROVIDER:
        case "gemini":
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            return GoogleGenerativeAIEmbeddings(
                model=f"models/{settings.EMBEDDING_MODEL}",
                google_api_key=settings.LLM_API_KEY,
            )

        case "openai":
            from langchain_openai import OpenAIEmbeddings

            return OpenAIEmbeddings(
                model=settings.EMBEDDING_MODEL,
                api_key=settings.LLM_API_KEY,
                dimensions=settings.EMBEDDING_DIMENSIONS,
            )

        case _:
            raise ValueError(
                f"Unknown embedding provider: '{settings.EMBEDDING_PROVIDER}'. "
                f"Supported: gemini, openai"
            )


def _message_text(content) -> str:
    """Flatten LangChain message content (str or list of parts) into plain text."""
    if isinstance(content, list):
        return "\n".join(
            part["text"] if isinstance(part, dict) else str(part)
            for part in content
            if not isinstance(part, dict) or part.get("type") == "text"
        )
    return str(content)


class TextGenerator:
    """(prompt, optional system instruction) -> text, bounded by GENERATION_TIMEOUT."""

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        timeout: float | None = None,
        temperature: float | None = None,
    ):
        settings = get_settings()
        self._llm = llm
        self.temperature = temperature
        self.timeout = settings.GENERATION_TIMEOUT if timeout is None else timeout

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = create_llm(self.temperature)
        return self._llm

    def generate(self, prompt: str, system: str | None = None) -> str:
        messages = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        response = run_with_timeout("generation", self.llm.invoke, self.timeout, messages)
        return _message_text(response.content).strip()


class Embedder:
    """Text -> fixed-dimension vector, truncated to EMBEDDING_DIMENSIONS."""

    def __init__(self, model: Embeddings | None = None, timeout: float | None = None):
        settings = get_settings()
        self._model = model
        self.dimensions = settings.EMBEDDING_DIMENSIONS
        self.timeout = settings.RETRIEVAL_TIMEOUT if timeout is None else timeout

    @property
    def model(self) -> Embeddings:
        if self._model is None:
            self._model = create_embeddings()
        return self._model

    def embed_query(self, text: str) -> list[float]:
        vector = run_with_timeout("embedding", self.model.embed_query, self.timeout, text)
        if not vector:
            raise UpstreamError("embedding", "empty vector returned")
        return list(vector[: self.dimensions])

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Batch embed. Called from ingestion worker threads, so no extra timeout wrapper."""
        vectors = self.model.embed_documents(texts)
        if len(vectors) != len(texts):
            raise UpstreamError(
                "embedding",
                f"expected {len(texts)} vectors, got {len(vectors)}",
            )
        return [list(v[: self.dimensions]) for v in vectors]
