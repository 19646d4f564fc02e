from flask import Blueprint

api_bp = Blueprint('api', __name__, url_prefix='/api')

# Register sub-blueprints
from .timeline_routes import production_timeline_api_bp  # noqa: E402

api_bp.register_blueprint(production_timeline_api_bp)
