from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Provider can be "openai" (Chat Completions) or "gemini" (Generative Language API)
	llm_provider: str = Field(default="openai", validation_alias="LLM_PROVIDER")
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_model: str = Field(default="gpt-4o", validation_alias="OPENAI_MODEL")
	openai_base_url: str = Field(default="https://api.openai.com/v1/chat/completions", validation_alias="OPENAI_BASE_URL")
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	llm_timeout_seconds: float = Field(default=120, validation_alias="LLM_TIMEOUT_SECONDS")
	llm_temperature: float = Field(default=0.3, validation_alias="LLM_TEMPERATURE")

	# Session tokens
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

	# In-process quiz sessions untouched for this long are dropped by the cleanup task
	quiz_session_idle_minutes: int = Field(default=3 * 60, validation_alias="QUIZ_SESSION_IDLE_MINUTES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Return the existing badge instead of issuing a second one for the same learner and course
	badge_deduplicate: bool = Field(default=True, validation_alias="BADGE_DEDUPLICATE")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	def llm_configured(self) -> bool:
		if self.llm_provider == "gemini":
			return bool(self.gemini_api_key)
		return bool(self.openai_api_key)

settings = Settings()
