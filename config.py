"""
Configuration module for the Lily Chat Bridge application.
Handles environment variables and application settings.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration class."""

    # API Keys
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")

    # Cloud inference
    CLOUD_BASE_URL: str = os.getenv("CLOUD_BASE_URL", "https://openrouter.ai/api/v1")
    CLOUD_MODELS: list[str] = [m.strip() for m in os.getenv("CLOUD_MODELS", "").split(",") if m.strip()]
    # "reader" consumes the body chunk by chunk, "poll" inspects a growing buffer
    CLOUD_STREAM_TRANSPORT: str = os.getenv("CLOUD_STREAM_TRANSPORT", "reader")

    # Application Settings
    APP_TITLE: str = "Lily Chat Bridge"
    DATA_DIR: str = os.getenv("LILY_DATA_DIR", "data")
    DEFAULT_CHAT_TITLE: str = "New Chat"
    TITLE_MAX_LENGTH: int = 30
    IMAGE_PLACEHOLDER: str = "(Image)"

    # Memory
    MEMORY_ENABLED: bool = _env_flag("MEMORY_ENABLED")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "qwen3-embedding:0.6b")
    MEMORY_SIMILARITY_THRESHOLD: float = 0.70
    MEMORY_RESULT_LIMIT: int = 3

    # Tool loop
    MAX_TOOL_ROUNDS: int = int(os.getenv("MAX_TOOL_ROUNDS", "5"))
    # runs model-written code on this host; off unless explicitly enabled
    PYTHON_TOOL_ENABLED: bool = _env_flag("PYTHON_TOOL_ENABLED")

    # Timeouts (in seconds)
    CLOUD_TIMEOUT: float = 60.0
    CLOUD_CONNECT_TIMEOUT: float = 10.0
    PYTHON_TOOL_TIMEOUT: float = 10.0

    # Poll interval for progressive readers (in seconds)
    STREAM_POLL_INTERVAL: float = 0.05

    @classmethod
    def db_path(cls, name: str) -> str:
        """Path of a SQLite database file inside the data directory."""
        data_dir = Path(cls.DATA_DIR)
        data_dir.mkdir(parents=True, exist_ok=True)
        return str(data_dir / name)

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and print warnings for missing settings."""
        if not cls.OPENROUTER_API_KEY:
            print("   WARNING: OPENROUTER_API_KEY not found in .env file")
            print("   Cloud models will not be available. Local Ollama models still work.")

        if cls.CLOUD_STREAM_TRANSPORT not in ("reader", "poll"):
            print(f"   WARNING: Unknown CLOUD_STREAM_TRANSPORT '{cls.CLOUD_STREAM_TRANSPORT}', using 'reader'")
            cls.CLOUD_STREAM_TRANSPORT = "reader"


Config.validate()
