"""Application settings loaded from environment variables."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Model gateway (gemini, ollama)
    llm_provider: str = "gemini"

    # Gemini settings
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # Ollama settings (also used for embeddings)
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen3:8b-q4_K_M"
    embedding_model: str = "qwen3-embedding:8b-q4_K_M"

    # Knowledge base
    chroma_persist_dir: str = "./data/chroma"
    knowledge_collection: str = "business_knowledge"
    knowledge_file: Optional[str] = None
    rag_top_k: int = 3

    # CRM (HTTP lookup if base url is set, otherwise the YAML customers file)
    crm_base_url: Optional[str] = None
    crm_api_key: str = ""
    customers_file: Optional[str] = None

    # Business / locale
    business_name: str = "our company"
    timezone: str = "Asia/Jerusalem"

    # Per-call timeouts (seconds)
    model_timeout_s: float = 30.0
    retrieval_timeout_s: float = 5.0
    directory_timeout_s: float = 3.0
    tool_timeout_s: float = 15.0

    # Conversation limits
    max_tool_rounds: int = 1
    max_history_turns: int = 0  # 0 keeps the whole conversation

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
