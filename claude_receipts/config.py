"""Application configuration."""
import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Default printer settings
    RECEIPT_PRINTER = os.environ.get("RECEIPT_PRINTER", "")  # tcp://host:port, usb, usb:VID:PID or CUPS name
    PRINTER_TIMEOUT = float(os.environ.get("PRINTER_TIMEOUT", 5.0))

    # Receipt sharing
    SHARE_RATE_LIMIT = 10  # receipts per client per window
    SHARE_RATE_WINDOW = 60 * 60  # seconds
    SHARE_RATE_SALT = os.environ.get("SHARE_RATE_SALT", "-claude-receipts-salt")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(os.path.dirname(basedir), 'instance', 'receipts.db')}"
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(os.path.dirname(basedir), 'instance', 'receipts.db')}"
    )


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RECEIPT_PRINTER = ""


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
