from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    BCRYPT_ROUNDS: int = 12

    # Admin account seeded at startup when both are set
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    # Simulated quantity of each asset credited on registration
    INITIAL_ASSET_GRANT: float = 0.0

    INVESTMENT_REQUIRES_KYC: bool = True
    MATURITY_SWEEP_ENABLED: bool = True

    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v):
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator('ADMIN_EMAIL', mode='before')
    @classmethod
    def normalize_admin_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

settings = Settings()
