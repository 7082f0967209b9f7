from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    database_url: str = "sqlite+aiosqlite:///./nabd.db"

    @model_validator(mode="after")
    def normalize_database_url(self) -> "Settings":
        if self.database_url.startswith("postgres://"):
            self.database_url = self.database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif self.database_url.startswith("postgresql://"):
            self.database_url = self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self

    llm_provider: str = "openai"  # "openai" (any compatible endpoint) or "anthropic"

    openai_api_key: str = Field(
        default="", validation_alias=AliasChoices("OPENAI_API_KEY", "NVIDIA_API_KEY")
    )
    openai_base_url: str = "https://integrate.api.nvidia.com/v1"
    openai_model: str = "meta/llama-3.1-70b-instruct"

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_max_tokens: int = 4096

    llm_timeout_seconds: float = 45.0
    llm_max_tool_rounds: int = 2

    skills_dir: str = "skills"
    skills_discovery_ttl_seconds: float = 4.0
    skill_request_timeout_seconds: float = 9.0

    ipstack_api_key: str = ""
    news_api_key: str = ""
    wikipedia_language: str = "en"

    rag_store_path: str = "data/rag-documents.json"
    rag_top_k: int = 3

    trace_history_per_conversation: int = 30
    trace_history_global: int = 80

    debug_token: str = ""

    sentry_dsn: str = ""

    environment: str = "development"
    allowed_origins: str = ""


settings = Settings()
