# Centralised application configuration
# (environment variables, constants, timeouts).

import os


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    APP_NAME = os.getenv("APP_NAME", "QR Phone Verification")
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "3000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "1800"))  # 30 Minutes
    SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))  # 5 Minutes
    POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "2000"))

    PHONE_MIN_DIGITS = int(os.getenv("PHONE_MIN_DIGITS", "8"))
    PHONE_MAX_DIGITS = int(os.getenv("PHONE_MAX_DIGITS", "15"))

    QR_BOX_SIZE = int(os.getenv("QR_BOX_SIZE", "10"))
    QR_BORDER = int(os.getenv("QR_BORDER", "2"))

    CORS_ORIGINS = _csv(os.getenv("CORS_ORIGINS", "https://dedovichmax.github.io,http://localhost:3000"))

    # Empty string disables the CSV event log
    EVENT_LOG_FILE = os.getenv("EVENT_LOG_FILE", "")

    @property
    def expires_in_text(self) -> str:
        minutes = self.SESSION_TTL_SECONDS // 60
        if minutes >= 1:
            return f"{minutes} minute" + ("" if minutes == 1 else "s")
        return f"{self.SESSION_TTL_SECONDS} seconds"


settings = Settings()
