import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""

    successful_registrations = []
    failed_registrations = []

    def safe_register_blueprint(import_path, blueprint_name, url_prefix=None, description=None):
        """Register a blueprint, recording failures instead of aborting startup"""
        try:
            module_path, bp_name = import_path.rsplit('.', 1)
            module = __import__(module_path, fromlist=[bp_name])
            blueprint = getattr(module, bp_name)

            if url_prefix:
                app.register_blueprint(blueprint, url_prefix=url_prefix)
            else:
                app.register_blueprint(blueprint)

            successful_registrations.append(description or blueprint_name)
            return True
        except (ImportError, AttributeError, ValueError) as e:
            failed_registrations.append(f"{description or blueprint_name}: {e}")
            return False

    safe_register_blueprint(
        'cellartrack.blueprints.api.api_bp',
        'api_bp',
        None,
        'Production API',
    )

    app_logger = getattr(app, 'logger', logger)

    # Only log in debug mode or if there are failures
    if app.debug or failed_registrations:
        app_logger.info("=== Blueprint Registration Summary ===")
        app_logger.info("Successful: %s", len(successful_registrations))
        if app.debug:
            for name in successful_registrations:
                app_logger.info("   - %s", name)
        if failed_registrations:
            app_logger.error("Failed: %s", len(failed_registrations))
            for error in failed_registrations:
                app_logger.error("   - %s", error)
        else:
            app_logger.info("All blueprints registered successfully!")

    return successful_registrations, failed_registrations
