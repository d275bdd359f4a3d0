"""Flask application factory."""
import os

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def create_app(config_name: str = "default"):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Load configuration
    from claude_receipts.config import config
    app.config.from_object(config[config_name])

    # SQLite needs its directory to exist
    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///") and uri != "sqlite:///:memory:":
        os.makedirs(os.path.dirname(uri[len("sqlite:///"):]), exist_ok=True)

    # Initialize extensions
    db.init_app(app)

    # Register blueprints
    from claude_receipts.routes.api import api_bp
    from claude_receipts.routes.pages import pages_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(pages_bp)

    # Create tables
    with app.app_context():
        db.create_all()

    return app
