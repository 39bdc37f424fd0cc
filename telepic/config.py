import os


class Config:
    DATABASE_URL = os.environ.get("DATABASE_URL") or "sqlite://telepic.db"
    # Comma separated; "*" allows every origin.
    CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "8000"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "info").upper()
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    GENERATE_SCHEMAS = os.environ.get("GENERATE_SCHEMAS", "true").lower() == "true"
