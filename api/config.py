from dotenv import load_dotenv
import os

load_dotenv()


def _flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ev_rewards.db")

# "sql" or "memory"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql").strip().lower()

MEDIA_DIR = os.getenv("MEDIA_DIR", "media")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Tokens are issued by the external identity provider
AUTH_REQUIRED = _flag("AUTH_REQUIRED")
AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY", "change-me")
AUTH_ALGORITHM = os.getenv("AUTH_ALGORITHM", "HS256")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
