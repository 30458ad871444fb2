from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(default="sqlite:///./data/clinic.db")
    app_name: str = "ClinicalGoTo"
    secret_key: str = Field(default="dev-change-me")
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3001

    admin_username: str = "admin"
    admin_password: str = "admin123"

    ctgov_base_url: str = "https://clinicaltrials.gov/api/v2"
    ctgov_timeout_seconds: float = 5.0

    allowed_origins: str = "*"

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    from_email: str = "noreply@clinicalgoto.com"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


settings = Settings()
