# src/config.py
import yaml
import os
from dotenv import load_dotenv
import logging
import sys

load_dotenv(override=True)

logger = logging.getLogger(__name__)

# ENV VARIABLES
QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333").strip()
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY", "").strip() or None
QDRANT_TIMEOUT = int(os.getenv("QDRANT_TIMEOUT", 60))

MONGO_URI = os.getenv("MONGO_URI", "").strip()
MONGO_HOST = os.getenv("MONGO_HOST", "localhost").strip()
MONGO_PORT = int(os.getenv("MONGO_PORT", 27017))
MONGO_USERNAME = os.getenv("MONGO_USERNAME", "").strip()
MONGO_PASSWORD = os.getenv("MONGO_PASSWORD", "").strip()
MONGO_DATABASE = os.getenv("MONGO_DATABASE", "course_materials").strip()
MONGO_PARAMS = os.getenv("MONGO_PARAMS", "?authSource=admin").strip()
MONGO_COURSES_COLLECTION = os.getenv(
    "MONGO_COURSES_COLLECTION", "active-course-list"
).strip()

EMBEDDINGS_MODEL = os.getenv("EMBEDDINGS_MODEL", "text-embedding-3-small").strip()
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173").split(",")
]

# Upper bounds for every call into an external store or provider
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", 60))
VECTOR_STORE_TIMEOUT_SECONDS = float(os.getenv("VECTOR_STORE_TIMEOUT_SECONDS", 30))
METADATA_TIMEOUT_SECONDS = float(os.getenv("METADATA_TIMEOUT_SECONDS", 15))

# Reconciliation sweep, 0 disables the background loop
RECONCILE_INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", 300))
PENDING_GRACE_PERIOD_SECONDS = int(os.getenv("PENDING_GRACE_PERIOD_SECONDS", 900))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


def get_mongodb_uri() -> str:
    """Build the MongoDB connection string from the environment."""
    if MONGO_URI:
        return MONGO_URI
    if MONGO_USERNAME and MONGO_PASSWORD:
        return (
            f"mongodb://{MONGO_USERNAME}:{MONGO_PASSWORD}@{MONGO_HOST}:{MONGO_PORT}"
            f"/{MONGO_DATABASE}{MONGO_PARAMS}"
        )
    return f"mongodb://{MONGO_HOST}:{MONGO_PORT}/{MONGO_DATABASE}"


def configure_logging(level=logging.INFO):
    """Configure logging for the entire application."""
    # Check if already configured to avoid duplicate handlers
    if not logging.getLogger().hasHandlers():
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.addHandler(console_handler)


class Config:
    def __init__(self, config_path: str = "config.yaml"):
        try:
            with open(config_path, "r") as file:
                self.config = yaml.safe_load(file) or {}
        except FileNotFoundError:
            logger.warning(f"Config file '{config_path}' not found, using defaults")
            self.config = {}

    def get(self, *keys, default=None):
        """Generalized method to get a value from a nested dictionary."""
        value = self.config
        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default


# Expose a module-level config instance for convenient imports
# Allow overriding the config file location via INGEST_CONFIG_PATH
CONFIG_PATH = os.getenv("INGEST_CONFIG_PATH", "config.yaml")
config = Config(CONFIG_PATH)
