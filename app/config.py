from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    ESPOCRM_BASE_URL: str = "https://pf.wspp.co.uk/api/v1/CUnits"
    ESPOCRM_API_KEY: str | None = None
    ESPOCRM_PAGE_SIZE: int = 200
    ESPOCRM_TIMEOUT: float = 30.0
    ENVIRONMENT: str = "development"
    NODE_ENV: str | None = None
    REFRESH_INTERVAL_MINUTES: int = 0
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODE_COUNTRY_CODES: str = "gb"
    GEOCODE_SUFFIX: str = "UK"
    GEOCODE_USER_AGENT: str = "PropertyMap/1.0"
    GEOCODE_TIMEOUT: float = 10.0
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        # NODE_ENV is still honoured for deployments shared with the web client
        return "production" in (self.ENVIRONMENT.lower(), (self.NODE_ENV or "").lower())

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]

settings = Settings()
