"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    chartchat_env: str = "development"
    chartchat_log_level: str = "debug"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Text generation (Ollama)
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "phi3:mini"
    # Short background/watermark phrases; falls back to ollama_model when empty
    model_decor: str = ""
    llm_timeout_s: float = 120.0

    # Rendering
    chart_width: int = 462
    chart_height: int = 347
    render_timeout_s: float = 30.0

    # Conversation: system turn + last N turns
    history_max_turns: int = 20

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
