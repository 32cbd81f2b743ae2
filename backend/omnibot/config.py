"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "OmniBot"
    environment: str = "development"
    log_level: str = "info"
    debug: bool = True

    # Local language model (Ollama-compatible /api/chat)
    llm_base_url: str = "http://localhost:11434"
    llm_model: str = "llama3.1:8b"

    # Tool collaborators
    calculator_url: str = "http://localhost:3001"
    retriever_url: str = "http://localhost:3002"

    # Orchestrator feature flags
    tool_calling_enabled: bool = True
    fast_path_calculator_enabled: bool = True

    # Conversation limits
    context_window: int = 10
    persisted_message_limit: int = 20
    title_max_length: int = 50

    # Session store
    state_backend: str = "file"
    state_path: str = "./data/policybot_state.json"
    storage_key: str = "policybot:state"

    # MongoDB (only used when state_backend == "mongodb")
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "omnibot"

    # CORS
    frontend_url: str = "http://localhost:5173"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
