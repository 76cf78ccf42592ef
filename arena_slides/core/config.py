#!/usr/bin/env python3
"""
Arena Slides Configuration
Environment-driven settings for the PLM client, the AI client and the stores.

Values come from the process environment; a .env file next to the working
directory is loaded first so local development needs no exports.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def _env_optional_int(name: str):
    value = os.getenv(name, '').strip()
    return int(value) if value else None


class ArenaConfig:
    """Configuration for the Arena Slides add-on"""

    # PLM backend
    ARENA_API_BASE_URL = os.getenv('ARENA_API_BASE_URL', 'https://api.arenasolutions.com/v1')
    ARENA_PAGE_SIZE = int(os.getenv('ARENA_PAGE_SIZE', 400))
    ARENA_MAX_PAGES = _env_optional_int('ARENA_MAX_PAGES')  # None = no cap
    ARENA_REQUEST_TIMEOUT = int(os.getenv('ARENA_REQUEST_TIMEOUT', 60))
    ARENA_QUALITY_PATHS = [
        path.strip() for path in
        os.getenv('ARENA_QUALITY_PATHS', '/qualityprocesses,/quality/processes,/quality').split(',')
        if path.strip()
    ]

    # Generative text backend
    GEMINI_API_BASE_URL = os.getenv('GEMINI_API_BASE_URL', 'https://generativelanguage.googleapis.com/v1beta')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')
    GEMINI_TIMEOUT = int(os.getenv('GEMINI_TIMEOUT', 120))
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')  # Used only when no key is stored
    GEMINI_TEMPERATURE = float(os.getenv('GEMINI_TEMPERATURE', 0.4))
    GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv('GEMINI_MAX_OUTPUT_TOKENS', 2048))

    # Stores
    SETTINGS_DB_PATH = os.getenv('SETTINGS_DB_PATH', os.path.join(os.path.expanduser('~'), '.arena_slides', 'settings.db'))
    SESSION_CACHE_TTL_SECONDS = int(os.getenv('SESSION_CACHE_TTL_SECONDS', 300))
    COLLECTION_HISTORY_MAX = int(os.getenv('COLLECTION_HISTORY_MAX', 5))

    # Orchestration
    OPERATION_TIME_BUDGET_SECONDS = int(os.getenv('OPERATION_TIME_BUDGET_SECONDS', 330))
    INCLUDE_IMAGES = _env_bool('ARENA_INCLUDE_IMAGES', 'true')

    # Logging Configuration
    LOG_LEVEL = os.getenv('ARENA_SLIDES_LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('ARENA_SLIDES_LOG_FILE', '')

    @classmethod
    def validate_config(cls):
        """Validate configuration settings"""
        issues = []

        if not cls.ARENA_API_BASE_URL.startswith(('http://', 'https://')):
            issues.append("ARENA_API_BASE_URL must be an http(s) URL")

        if cls.ARENA_PAGE_SIZE < 1 or cls.ARENA_PAGE_SIZE > 400:
            issues.append("ARENA_PAGE_SIZE must be between 1 and 400")

        if cls.ARENA_MAX_PAGES is not None and cls.ARENA_MAX_PAGES < 1:
            issues.append("ARENA_MAX_PAGES must be positive when set")

        if not cls.ARENA_QUALITY_PATHS:
            issues.append("ARENA_QUALITY_PATHS needs at least one candidate path")

        if cls.SESSION_CACHE_TTL_SECONDS < 0:
            issues.append("SESSION_CACHE_TTL_SECONDS cannot be negative")

        if cls.COLLECTION_HISTORY_MAX < 1:
            issues.append("COLLECTION_HISTORY_MAX should be at least 1")

        if cls.COLLECTION_HISTORY_MAX > 5:
            issues.append("COLLECTION_HISTORY_MAX is capped at 5")

        return issues


# Environment-specific configurations
class DevelopmentConfig(ArenaConfig):
    """Development environment configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(ArenaConfig):
    """Production environment configuration"""
    DEBUG = False
    LOG_LEVEL = 'INFO'


class TestConfig(ArenaConfig):
    """Test environment configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'
    ARENA_API_BASE_URL = 'https://arena.test/v1'
    ARENA_MAX_PAGES = None
    ARENA_QUALITY_PATHS = ['/qualityprocesses', '/quality/processes', '/quality']
    GEMINI_API_BASE_URL = 'https://gemini.test/v1beta'
    GEMINI_API_KEY = ''
    SETTINGS_DB_PATH = ':memory:'
    OPERATION_TIME_BUDGET_SECONDS = 30


# Configuration factory
def get_config(env=None):
    """Get configuration based on environment"""
    env = env or os.getenv('ARENA_SLIDES_ENV', 'production')

    configs = {
        'development': DevelopmentConfig,
        'production': ProductionConfig,
        'test': TestConfig
    }

    return configs.get(env, ProductionConfig)
