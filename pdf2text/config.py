"""
pdf2text Configuration
Supports AWS Parameter Store for production secrets
"""
import os
from typing import Optional

from flask import current_app, has_app_context

try:
    import boto3
except ImportError:
    boto3 = None


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if boto3 and os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/pdf2text/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except Exception:
            pass

    return default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")

    # File uploads
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 50 * 1024 * 1024))  # 50MB
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "")  # empty means system temp dir

    # Archive
    ARCHIVE_DIR = os.environ.get("ARCHIVE_DIR", "archive")
    ARCHIVE_CAPACITY = int(os.environ.get("ARCHIVE_CAPACITY", "100"))
    ARCHIVE_ORPHAN_PDF_AGE = int(os.environ.get("ARCHIVE_ORPHAN_PDF_AGE", "3600"))  # seconds

    # Upstage document parsing
    UPSTAGE_API_KEY = os.environ.get("UPSTAGE_API_KEY", "")
    UPSTAGE_API_URL = os.environ.get("UPSTAGE_API_URL", "https://api.upstage.ai/v1/document-digitization")
    UPSTAGE_MODEL = os.environ.get("UPSTAGE_MODEL", "document-parse")
    UPSTAGE_TIMEOUT = int(os.environ.get("UPSTAGE_TIMEOUT", "120"))

    # OpenAI
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = int(os.environ.get("OPENAI_TIMEOUT", "60"))

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    UPSTAGE_API_KEY = get_parameter("upstage-api-key", Config.UPSTAGE_API_KEY)
    OPENAI_API_KEY = get_parameter("openai-api-key", Config.OPENAI_API_KEY)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    UPSTAGE_API_KEY = ""
    OPENAI_API_KEY = ""


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config(env: Optional[str] = None):
    """Get configuration class by environment name"""
    env = env or os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])


def setting(name: str, default=None):
    """Read a config value from the running app, falling back to the environment"""
    if has_app_context():
        value = current_app.config.get(name)
        return default if value is None else value
    return os.environ.get(name, default)
