from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./arcle.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_s: int = 30
    db_pool_recycle_s: int = 1800

    log_level: str = "INFO"
    log_json: bool = False

    # llm
    llm_enabled: bool = False
    llm_provider: str = "groq"
    llm_model: str = "llama-3.1-8b-instant"
    llm_chat_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.1
    llm_chat_temperature: float = 0.8
    llm_timeout_s: int = 20
    llm_classifier_enabled: bool = True
    llm_chat_responses: bool = True
    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    openai_api_key: str = ""

    # conversation state
    session_store: str = "memory"
    session_ttl_seconds: int = 3600
    chat_history_limit: int = 20

    # wallet custody
    circle_api_key: str = ""
    circle_base_url: str = "https://api.circle.com"
    circle_entity_secret_ciphertext: str = ""
    circle_blockchain: str = "ARC-TESTNET"
    circle_timeout_s: int = 15
    circle_token_messenger_address: str = ""
    circle_fx_swap_address: str = ""
    usdc_token_address: str = "0x3600000000000000000000000000000000000000"
    eurc_token_address: str = "0x89B50855Aa3bE2F677cD6303Cec089B5F319D72a"

    # fx
    fx_cache_ttl_seconds: int = 300
    fx_timeout_s: int = 5
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    exchange_rate_base_url: str = "https://api.exchangerate-api.com/v4"

    large_amount_threshold: float = 10000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("chat_history_limit")
    @classmethod
    def _clamp_history_limit(cls, value: int) -> int:
        return max(20, min(50, value))

    @property
    def DATABASE_URL(self) -> str:
        return self.database_url

    @property
    def LLM_ENABLED(self) -> bool:
        return self.llm_enabled

    @property
    def LLM_PROVIDER(self) -> str:
        return self.llm_provider

    @property
    def LLM_MODEL(self) -> str:
        return self.llm_model

    @property
    def LLM_CHAT_MODEL(self) -> str:
        return self.llm_chat_model

    @property
    def LLM_API_KEY(self) -> str:
        if self.llm_provider == "openai":
            return self.openai_api_key
        return self.groq_api_key

    @property
    def CIRCLE_CONFIGURED(self) -> bool:
        return bool(self.circle_api_key)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader (process-level).
    """
    return Settings()
