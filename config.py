import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

# Configuration
MONGO_URI = os.environ.get("MONGO_URI", "mongodb://localhost:27017/healthtracker")
SECRET_KEY = os.environ.get("SECRET_KEY", "secret")
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "jwt-secret-change-me")
JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)

# Groq chat completions
GROQ_KEY = os.environ.get("GROQ_KEY")
GROQ_CHAT_MODEL = os.environ.get("GROQ_CHAT_MODEL", "llama-3.3-70b-versatile")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", 5000))
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")


def flask_config() -> dict:
    """Settings copied onto ``app.config`` by the app factory."""
    return {
        "SECRET_KEY": SECRET_KEY,
        "JWT_SECRET_KEY": JWT_SECRET_KEY,
        "JWT_ACCESS_TOKEN_EXPIRES": JWT_ACCESS_TOKEN_EXPIRES,
        "JWT_REFRESH_TOKEN_EXPIRES": JWT_REFRESH_TOKEN_EXPIRES,
        "MONGO_URI": MONGO_URI,
        "GROQ_CHAT_MODEL": GROQ_CHAT_MODEL,
    }
