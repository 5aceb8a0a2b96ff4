import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # Database settings
    db_file: str = os.getenv("LENDINGDESK_DB_FILE", "lendingdesk.db")

    # Circulation policy
    fine_per_day: int = int(os.getenv("FINE_PER_DAY", "10"))
    retention_days: int = int(os.getenv("RETENTION_DAYS", "2"))
    reminder_days_ahead: int = int(os.getenv("REMINDER_DAYS_AHEAD", "2"))

    # OTP settings
    otp_window_seconds: int = int(os.getenv("OTP_WINDOW_SECONDS", "120"))

    # SMS (Twilio) settings
    twilio_account_sid: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_from_number: Optional[str] = os.getenv("TWILIO_FROM_NUMBER")
    sms_country_code: str = os.getenv("SMS_COUNTRY_CODE", "+91")
    sms_timeout: float = float(os.getenv("SMS_TIMEOUT", "10"))

    # Security settings
    secret_key: str = os.getenv("SECRET_KEY", "your-secret-key-change-this-in-production")
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", secret_key)
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_minutes: int = int(os.getenv("JWT_EXPIRATION_MINUTES", "1440"))  # 24 hours
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Scheduler settings
    enable_scheduler: bool = _flag("ENABLE_SCHEDULER", "False")
    reminder_hour: int = int(os.getenv("REMINDER_HOUR", "10"))
    cleanup_hour: int = int(os.getenv("CLEANUP_HOUR", "0"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Circulation Desk")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _flag("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)


settings = Settings()
