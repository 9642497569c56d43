"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from jewelbill.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (metal-rate snapshot shared by workers)
    from jewelbill.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from jewelbill.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind a reverse proxy in production
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize database
    init_db(app)

    # Jinja filters for invoice formatting
    from jewelbill.models import Currency
    from jewelbill.utils.formatters import date_in, datetime_in, format_price, format_weight
    app.jinja_env.filters['date_in'] = date_in
    app.jinja_env.filters['datetime_in'] = datetime_in
    app.jinja_env.filters['weight'] = format_weight
    app.jinja_env.filters['price'] = lambda value, currency='INR': format_price(value, Currency.parse(currency))

    # Error Handlers
    from jewelbill.exceptions import AppError

    @app.errorhandler(AppError)
    def handle_app_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"AppError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"AppError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from jewelbill.blueprints.auth import auth_bp
    from jewelbill.blueprints.bills import bills_bp
    from jewelbill.blueprints.metal_rates import metal_rates_bp
    from jewelbill.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(bills_bp)
    app.register_blueprint(metal_rates_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from jewelbill.cli_commands import init_cli_commands
    init_cli_commands(app)

    # Metal rates: fresh cache per app, background refresh outside tests
    from jewelbill.services.metal_rates_service import rate_cache, start_rate_scheduler
    rate_cache.stale_seconds = app.config.get('METAL_RATES_STALE_SECONDS', rate_cache.stale_seconds)
    rate_cache.invalidate()
    if app.config.get('METAL_RATES_SCHEDULER_ENABLED') and not app.config.get('TESTING'):
        start_rate_scheduler(app)

    app.logger.info(f"Billing app ready (prefix={app.config.get('BILL_NUMBER_PREFIX')})")
    return app
