"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Preferred URL scheme (for url_for with _external=True)
    PREFERRED_URL_SCHEME = os.getenv('PREFERRED_URL_SCHEME', 'http')

    # Admin authentication (bearer token gate)
    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@localhost')
    ADMIN_PASSWORD_HASH = os.getenv('ADMIN_PASSWORD_HASH')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_HOURS = int(os.getenv('JWT_EXPIRES_HOURS', '24'))

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'jewelbill')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'jewelbill')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'jewelbill')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Business Information (invoice letterhead)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'PALANIAPPA JEWELLERS')
    BUSINESS_SHORT_NAME = os.getenv('BUSINESS_SHORT_NAME', 'PALANIAPPA')
    BUSINESS_ADDRESS_LINES = [
        line.strip()
        for line in os.getenv(
            'BUSINESS_ADDRESS_LINES',
            'AVK ARCADE 315 C|HOSUR MAIN ROAD OPP NEW BUS STAND|SALEM, TAMIL NADU|PINCODE : 636003'
        ).split('|')
        if line.strip()
    ]
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '+91 427-2333324')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', 'jewelerypalaniappa@gmail.com')
    BUSINESS_GSTIN = os.getenv('BUSINESS_GSTIN', '33AAACT5712A1Z4')
    BUSINESS_STATE_CODE = os.getenv('BUSINESS_STATE_CODE', '33 (Tamil Nadu)')
    INVOICE_LOGO_PATH = os.getenv('INVOICE_LOGO_PATH', '')

    # Billing defaults (percentages applied when the request omits them)
    BILL_NUMBER_PREFIX = os.getenv('BILL_NUMBER_PREFIX', 'PJ')
    DEFAULT_MAKING_CHARGE_PERCENT = os.getenv('DEFAULT_MAKING_CHARGE_PERCENT', '12.0')
    DEFAULT_GST_PERCENT = os.getenv('DEFAULT_GST_PERCENT', '3.0')
    DEFAULT_VAT_PERCENT = os.getenv('DEFAULT_VAT_PERCENT', '10.0')

    # Metal rates (commodity prices shown on the storefront ticker)
    METAL_SPOT_API_URL = os.getenv('METAL_SPOT_API_URL', 'https://api.metals.live/v1/spot/gold,silver')
    EXCHANGE_RATE_API_URL = os.getenv('EXCHANGE_RATE_API_URL', 'https://api.exchangerate-api.com/v4/latest/USD')
    METAL_RATES_HTTP_TIMEOUT = float(os.getenv('METAL_RATES_HTTP_TIMEOUT', '10'))
    METAL_RATES_REFRESH_SECONDS = int(os.getenv('METAL_RATES_REFRESH_SECONDS', str(6 * 60 * 60)))  # 6 hours
    METAL_RATES_STALE_SECONDS = int(os.getenv('METAL_RATES_STALE_SECONDS', str(12 * 60 * 60)))
    METAL_RATES_SCHEDULER_ENABLED = os.getenv('METAL_RATES_SCHEDULER_ENABLED', 'true').lower() == 'true'

    # Redis cache (shared metal-rate snapshot across workers)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'jewelbill')

    # Create tables on startup (handy for SQLite / first deploy)
    DB_CREATE_ALL = os.getenv('DB_CREATE_ALL', 'false').lower() == 'true'


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    DB_CREATE_ALL = True
    ADMIN_EMAIL = 'admin@test.com'
    ADMIN_PASSWORD_HASH = None
    ADMIN_PASSWORD = 'admin-password'
    INVOICE_LOGO_PATH = ''
    METAL_RATES_SCHEDULER_ENABLED = False
    CACHE_ENABLED = False
