"""
Configuration Management
========================

Centralized configuration for the product research pipeline.
Values come from the environment (optionally a .env file next to the package).
"""

import os
from typing import Dict, Any
from dotenv import load_dotenv

# Load environment variables from .env file
package_dir = os.path.dirname(os.path.abspath(__file__))
env_path = os.path.join(os.path.dirname(package_dir), '.env')
load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration"""

    # Server Configuration
    HOST = os.getenv('HOST', '127.0.0.1')
    PORT = int(os.getenv('PORT', 8090))
    DEBUG = _env_bool('DEBUG', False)
    API_PREFIX = "/api"

    # Auth for the trigger endpoints
    ADMIN_API_TOKEN = os.getenv('ADMIN_API_TOKEN')
    INTERNAL_CALL_HEADER = os.getenv('INTERNAL_CALL_HEADER', 'X-Internal-Call')

    # Job store
    DATABASE_PATH = os.getenv('DATABASE_PATH', 'data/product_research.db')

    # Object storage: "local" or "gcs"
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local')
    LOCAL_STORAGE_DIR = os.getenv('LOCAL_STORAGE_DIR', 'data/uploads')
    PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', f"http://{HOST}:{PORT}/uploads")
    GCS_BUCKET = os.getenv('GCS_BUCKET')
    MAX_UPLOAD_MB = int(os.getenv('MAX_UPLOAD_MB', 50))

    # LLM Configuration
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY') or os.getenv('CLAUDE_API_KEY')
    FAST_MODEL = os.getenv('FAST_MODEL', 'claude-3-5-haiku-20241022')
    CAPABLE_MODEL = os.getenv('CAPABLE_MODEL', 'claude-sonnet-4-20250514')
    EXTRACTION_MODEL = os.getenv('EXTRACTION_MODEL')  # forces a model, skips tier selection
    ENABLE_GROUNDING = _env_bool('ENABLE_GROUNDING', True)

    # OCR: "vision", "tesseract" or "none"
    OCR_ENGINE = os.getenv('OCR_ENGINE', 'vision')
    OCR_LANGUAGES = os.getenv('OCR_LANGUAGES', 'eng')
    SCANNED_DENSITY_THRESHOLD = float(os.getenv('SCANNED_DENSITY_THRESHOLD', 0.5))
    OCR_MIN_TEXT_CHARS = int(os.getenv('OCR_MIN_TEXT_CHARS', 50))
    RENDER_DPI = int(os.getenv('RENDER_DPI', 144))

    # Network timeouts (seconds) and scrape politeness
    SCRAPE_TIMEOUT = float(os.getenv('SCRAPE_TIMEOUT', 15))
    IMAGE_TIMEOUT = float(os.getenv('IMAGE_TIMEOUT', 30))
    PDF_TIMEOUT = float(os.getenv('PDF_TIMEOUT', 60))
    OCR_TIMEOUT = float(os.getenv('OCR_TIMEOUT', 30))
    SCRAPE_CONCURRENCY = int(os.getenv('SCRAPE_CONCURRENCY', 3))
    SCRAPE_BATCH_DELAY = float(os.getenv('SCRAPE_BATCH_DELAY', 0.5))

    # Image ingestion
    MAX_IMAGES_PER_PRODUCT = int(os.getenv('MAX_IMAGES_PER_PRODUCT', 3))
    STORAGE_COST_PER_IMAGE = float(os.getenv('STORAGE_COST_PER_IMAGE', 0.0001))

    # Worker
    POLL_INTERVAL = float(os.getenv('POLL_INTERVAL', 5))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Export non-secret configuration as dictionary"""
        return {
            'host': cls.HOST,
            'port': cls.PORT,
            'debug': cls.DEBUG,
            'database_path': cls.DATABASE_PATH,
            'storage_backend': cls.STORAGE_BACKEND,
            'public_base_url': cls.PUBLIC_BASE_URL,
            'fast_model': cls.FAST_MODEL,
            'capable_model': cls.CAPABLE_MODEL,
            'extraction_model': cls.EXTRACTION_MODEL,
            'grounding': cls.ENABLE_GROUNDING,
            'ocr_engine': cls.OCR_ENGINE,
            'scanned_density_threshold': cls.SCANNED_DENSITY_THRESHOLD,
            'max_images_per_product': cls.MAX_IMAGES_PER_PRODUCT,
        }


# Global config instance
config = Config()
