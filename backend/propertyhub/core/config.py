from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unknown env vars so a shared .env can carry frontend/deploy placeholders.
    model_config = SettingsConfigDict(env_file=(".env", "../.env"), case_sensitive=True, extra="ignore")

    PROJECT_NAME: str = "PropertyHub"
    ENVIRONMENT: str = "development"
    API_PREFIX: str = "/api"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"

    SECRET_KEY: str = "change_me"
    JWT_ALGORITHM: str = "HS512"
    JWT_ISSUER: str = "propertyhub"
    JWT_AUDIENCE: str = "propertyhub-admin"

    SESSION_COOKIE_NAME: str = "propertyhub_session"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_MAX_AGE_DAYS: int = 30

    # Relational side: users, one-time codes and the audit log.
    DATABASE_URL: str = "sqlite:///./propertyhub.db"

    # Document side: the Property collection.
    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGODB_URI", "MONGO_URI"),
    )
    MONGODB_DB: str = "propertyhub"
    PROPERTY_COLLECTION: str = "Property"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    MONGODB_MAX_POOL_SIZE: int = 10

    CELERY_BROKER_URL: str = "redis://redis:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/2"
    # Run tasks inline when no broker is deployed.
    CELERY_TASK_ALWAYS_EAGER: bool = False

    BACKEND_CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    ALLOWED_HOSTS: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1"])

    ENABLE_API_DOCS: bool = False

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "no-reply@propertyhub.local"
    SMTP_USE_TLS: bool = True

    LOGIN_CODE_TTL_MINUTES: int = 3
    LOGIN_CODE_BRAND: str = "PropertyHub"
    SUPPORT_EMAIL: str = "support@propertyhub.local"

    ADMIN_PAGE_SIZE: int = 10
    PUBLIC_PAGE_SIZE: int = 12

    # Bulk replace stream pacing.
    STREAM_PAUSE_EVERY: int = 10
    STREAM_PAUSE_SECONDS: float = 0.05

    AZURE_TRANSLATOR_KEY: str = ""
    AZURE_TRANSLATOR_REGION: str = "global"
    AZURE_TRANSLATOR_ENDPOINT: str = "https://api.cognitive.microsofttranslator.com"
    AZURE_TRANSLATOR_API_VERSION: str = "3.0"
    TRANSLATOR_TIMEOUT_SECONDS: int = 30

    TRANSLATE_LIMIT_DEFAULT: int = 0
    TRANSLATE_BATCH_SIZE: int = 3
    TRANSLATE_BATCH_DELAY_SECONDS: float = 8.0
    TRANSLATE_INITIAL_COOLDOWN_SECONDS: float = 10.0
    TRANSLATE_MAX_RETRIES: int = 5

    XML_FEED_URL: str = ""
    XML_FEED_TIMEOUT_SECONDS: int = 30

    @model_validator(mode="after")
    def _prod_guards(self):
        if self.ENVIRONMENT.lower() == "production":
            if self.ENABLE_API_DOCS:
                raise ValueError("ENABLE_API_DOCS must be false in production")
            if not self.SECRET_KEY or len(self.SECRET_KEY) < 32:
                raise ValueError("SECRET_KEY must be 32+ chars in production")
            if any(h == "*" for h in self.ALLOWED_HOSTS):
                raise ValueError('ALLOWED_HOSTS must not contain "*" in production')
            if not self.SESSION_COOKIE_SECURE:
                raise ValueError("SESSION_COOKIE_SECURE must be true in production")
        else:
            if not self.ALLOWED_HOSTS:
                self.ALLOWED_HOSTS = ["*"]
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        url = self.DATABASE_URL
        # Some managed providers still hand out postgres:// which SQLAlchemy rejects.
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
