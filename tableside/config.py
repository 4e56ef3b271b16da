from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "tableside"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    PUBLIC_BASE_URL: str = "http://localhost:3000"
    # when False, client-declared line prices are stored as sent
    ENFORCE_MENU_PRICES: bool = False
    NUMBER_RETRIES: int = 10
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
