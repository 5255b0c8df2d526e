"""임베딩 생성 - Ollama 임베딩 모델 사용."""

import httpx

from rag_agent.config import settings
from rag_agent.errors import EmbeddingError


class OllamaEmbedder:
    """Ollama /api/embed 를 비동기로 호출하는 임베딩 제공자."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._model = model or settings.embed_model
        self._client = client or httpx.AsyncClient(timeout=120.0)

    @property
    def model(self) -> str:
        return self._model

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """여러 텍스트를 한 번에 벡터로 변환한다.

        Raises:
            EmbeddingError: 네트워크 오류, HTTP 오류, 응답 형식 오류.
        """
        try:
            resp = await self._client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model, "input": texts},
            )
            resp.raise_for_status()
            embeddings = resp.json()["embeddings"]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"embedding request failed: {e}") from e

        if not isinstance(embeddings, list) or len(embeddings) != len(texts) or not all(embeddings):
            raise EmbeddingError("no embedding returned from provider")
        return embeddings

    async def embed(self, text: str) -> list[float]:
        """단일 텍스트의 임베딩 벡터를 반환한다."""
        return (await self.embed_many([text]))[0]

    async def aclose(self):
        await self._client.aclose()
