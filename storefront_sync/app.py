"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from .config import get_config
from .context import AppContext, EXTENSION_KEY
from .logging_config import setup_app_logging

logger = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    from .categories_api import categories_bp
    from .health_check import health_bp
    from .products_api import products_bp
    from .sync_api import sync_bp
    from .tags_api import tags_bp
    from .webhook_api import webhook_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(tags_bp)
    app.register_blueprint(products_bp)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_name: str = None, context: AppContext = None) -> Flask:
    """Create the Flask app with its database, JWT, CORS and blueprints."""
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    if not app.config.get('TESTING'):
        setup_app_logging(app, app.config['LOG_PATH'])

    CORS(app,
         origins=app.config['CORS_ORIGINS'],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"])

    JWTManager(app)

    ctx = context or AppContext(app.config)
    ctx.initialize(create_tables=app.config.get('TESTING', False) or
                   os.getenv('AUTO_CREATE_TABLES', 'false').lower() == 'true')
    app.extensions[EXTENSION_KEY] = ctx

    register_blueprints(app)
    register_error_handlers(app)

    @app.teardown_appcontext
    def remove_session(exception=None):
        ctx.db.remove_session()

    return app
