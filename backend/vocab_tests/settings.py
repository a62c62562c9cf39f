from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Auth configuration (tokens are issued by /auth/token, verified on every request)
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# In-progress attempts older than this are graded as-is (0 disables expiry)
	stale_attempt_days: int = Field(default=0, validation_alias="STALE_ATTEMPT_DAYS")
	cleanup_interval_seconds: int = Field(default=24 * 60 * 60, validation_alias="CLEANUP_INTERVAL_SECONDS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
