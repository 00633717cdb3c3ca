from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fleetlink.db"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # admin notifications, each channel is skipped when left unset
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_FROM: Optional[str] = None
    MAIL_SERVER: str = "smtp.gmail.com"
    MAIL_PORT: int = 587
    ADMIN_EMAIL: Optional[str] = None

    TWILIO_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_FROM: Optional[str] = None
    ADMIN_WHATSAPP_TO: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow"
    )

    @property
    def mail_enabled(self) -> bool:
        return all([self.MAIL_USERNAME, self.MAIL_PASSWORD, self.MAIL_FROM, self.ADMIN_EMAIL])

    @property
    def whatsapp_enabled(self) -> bool:
        return all([self.TWILIO_SID, self.TWILIO_AUTH_TOKEN,
                    self.TWILIO_WHATSAPP_FROM, self.ADMIN_WHATSAPP_TO])
