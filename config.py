import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _float_env(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, '') else default


class Config:
    """Base configuration class."""
    APP_DATA_DIR = os.environ.get('APP_DATA_DIR', 'instance')

    # Validate FLASK_ENV
    FLASK_ENV = os.environ.get('FLASK_ENV', 'development')
    if FLASK_ENV == 'CHANGE_THIS_ENVIRONMENT':
        raise ValueError("FLASK_ENV must be changed from the default placeholder value")

    # Application settings
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Storage backend: json (local document), sqlite or http (remote resource)
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'json')
    DATA_FILE = os.environ.get('DATA_FILE', os.path.join(APP_DATA_DIR, 'db.json'))
    SEED_DATA_FILE = os.environ.get('SEED_DATA_FILE')
    DATABASE_PATH = os.environ.get('DATABASE_PATH', os.path.join(APP_DATA_DIR, 'portfolio.db'))
    REMOTE_STORAGE_URL = os.environ.get('REMOTE_STORAGE_URL')
    STORAGE_TIMEOUT = _float_env('STORAGE_TIMEOUT', 10.0)

    # Database backup settings (sqlite backend)
    DB_BACKUP_DIR = os.environ.get('DB_BACKUP_DIR', os.path.join(APP_DATA_DIR, 'backups'))
    MAX_BACKUP_FILES = int(os.environ.get('MAX_BACKUP_FILES', '10'))

    # Market data settings
    QUOTE_SOURCE = os.environ.get('QUOTE_SOURCE', 'yahoo_chart')
    QUOTE_API_URL = os.environ.get('QUOTE_API_URL', 'https://query1.finance.yahoo.com/v8/finance/chart/')
    QUOTE_TIMEOUT = _float_env('QUOTE_TIMEOUT', 10.0)
    QUOTE_BATCH_TIMEOUT = _float_env('QUOTE_BATCH_TIMEOUT', 30.0)
    QUOTE_MAX_WORKERS = int(os.environ.get('QUOTE_MAX_WORKERS', '16'))

    # Price refresh write fan-out
    WRITE_TIMEOUT = _float_env('WRITE_TIMEOUT', 30.0)
    WRITE_MAX_WORKERS = int(os.environ.get('WRITE_MAX_WORKERS', '8'))

    # Cache settings
    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = int(os.environ.get('CACHE_DEFAULT_TIMEOUT', '300'))  # 5 minutes default

    # Rate limiting
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_DEFAULT = os.environ.get('RATELIMIT_DEFAULT', '200 per hour;50 per minute')
    PRICE_REFRESH_RATE_LIMIT = os.environ.get('PRICE_REFRESH_RATE_LIMIT', '10 per minute')

    # Upload settings
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', str(16 * 1024 * 1024)))  # 16MB max upload default
    ALLOWED_EXTENSIONS = {'csv', 'txt'}


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    STORAGE_BACKEND = 'json'
    SEED_DATA_FILE = None
    CACHE_TYPE = 'NullCache'
    RATELIMIT_ENABLED = False
    QUOTE_TIMEOUT = 1.0
    QUOTE_BATCH_TIMEOUT = 5.0
    WRITE_TIMEOUT = 5.0


class ProductionConfig(Config):
    """Production configuration."""
    # Explicitly disable debug mode in production
    DEBUG = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
