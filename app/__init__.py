import logging

from flask import Flask
from app.core.klines import init_klines
from app.config.settings import load_config

logger = logging.getLogger(__name__)


def create_app(config=None):
    logger.info("Creating Flask application...")

    app = Flask(__name__)

    # Load configuration
    logger.info("Loading configuration...")
    app.config.update(config if config is not None else load_config())

    # Initialize kline store
    init_klines(app)

    # Register blueprints
    logger.info("Registering blueprints...")
    from app.routes.main import main_bp
    from app.routes.chart import chart_bp
    from app.routes.simulate import simulate_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(chart_bp, url_prefix='/api')
    app.register_blueprint(simulate_bp, url_prefix='/api')

    logger.info("Registered routes: %s", [str(r) for r in app.url_map.iter_rules()])

    return app
