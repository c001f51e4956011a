"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_SESSION_SECRET = "change_me_for_prod"


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_URL: str
    SESSION_SECRET: str
    LOG_LEVEL: str
    ALLOW_INSECURE_SESSION: bool
    ALLOW_DEV_CORS: bool
    ADMIN_USERNAME: str
    ADMIN_PASSWORD: str
    ADMIN_EMAIL: str
    SEED_DEMO_DATA: bool
    HASH_PASSWORDS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'academy.db'}")
        self.SESSION_SECRET = os.getenv("SESSION_SECRET", DEFAULT_SESSION_SECRET)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_INSECURE_SESSION = _flag("ALLOW_INSECURE_SESSION", "false")
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
        self.SEED_DEMO_DATA = _flag("SEED_DEMO_DATA", "false")
        self.HASH_PASSWORDS = _flag("HASH_PASSWORDS", "false")
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_SESSION and self.SESSION_SECRET == DEFAULT_SESSION_SECRET:
            raise RuntimeError("SESSION_SECRET must be set to a non-default value in non-dev environments")
        if not self.ADMIN_USERNAME or not self.ADMIN_PASSWORD:
            raise RuntimeError("ADMIN_USERNAME and ADMIN_PASSWORD must not be empty")


settings = Settings()
