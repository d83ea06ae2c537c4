"""
Runtime configuration for the Data Grid API.

Values come from the environment (a local .env file is honoured).
"""
import os

from dotenv import load_dotenv

load_dotenv()

DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_HOST = os.getenv("DB_HOST", "db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "datagrid")
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

TABLE_NAME = os.getenv("TABLE_NAME", "electric_cars")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))

# Base URL the API client talks to
API_URL = os.getenv("DATAGRID_API_URL", "http://localhost:8000/api")


def llm_api_keys():
    """Return the configured LLM API keys by provider name, in priority order."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "anthropic": os.getenv("ANTHROPIC_API_KEY"),
        "mistral": os.getenv("MISTRAL_API_KEY"),
        "deepseek": os.getenv("DEEPSEEK_API_KEY"),
    }
