import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./portal.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    JWT_SECRET = data.get("JWT_SECRET", "dev-secret-key-change-in-production")
    JWT_EXPIRE_MINUTES = int(data.get("JWT_EXPIRE_MINUTES", 15))
    ADMIN_API_KEY = data.get("ADMIN_API_KEY", "test-admin-key-12345")
    INVITE_TTL_DAYS = int(data.get("INVITE_TTL_DAYS", 7))
    INVITE_LINK_BASE_URL = data.get("INVITE_LINK_BASE_URL", "http://localhost:5173")
    RETRY_MAX_ATTEMPTS = int(data.get("RETRY_MAX_ATTEMPTS", 3))
    RETRY_BASE_DELAY_MS = int(data.get("RETRY_BASE_DELAY_MS", 300))
    RETRY_JITTER_MS = int(data.get("RETRY_JITTER_MS", 100))
    SIGNUP_ORPHAN_AFTER_MINUTES = int(data.get("SIGNUP_ORPHAN_AFTER_MINUTES", 15))
