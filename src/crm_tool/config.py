"""Application settings using Pydantic Settings"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./crm_tool.db"
    
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    
    IMPORT_MAX_FILE_BYTES: int = 5 * 1024 * 1024
    IMPORT_SESSION_TTL_MINUTES: int = 30
    IMPORT_VALIDATE_EMAILS: bool = True
    
    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v
    
    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if level not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return level
    
    @field_validator("IMPORT_MAX_FILE_BYTES", "IMPORT_SESSION_TTL_MINUTES")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v
    
    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"
    
    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")
    
    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
