from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    llm_model: str = "qwen2.5:7b"
    embed_model: str = "nomic-embed-text"
    embed_dim: int = 768
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000

    # Documents
    docs_path: str = "./Docs"

    # Cache / Memory
    cache_ttl: int = 300
    max_memory_size: int = 1000
    session_idle_hours: int = 24

    # Plugins
    plugin_timeout: float = 10.0
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"

    # Retrieval
    rag_max_results: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    model_config = {"env_prefix": "AGENT_"}

    @property
    def session_idle_seconds(self) -> int:
        return self.session_idle_hours * 60 * 60


settings = Settings()
