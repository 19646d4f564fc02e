from functools import wraps
from typing import Any, Dict, List, Optional

from flask import Response, current_app, jsonify, request


class APIResponse:
    """Standardized API response handler"""

    @staticmethod
    def success(data: Any = None, message: str = "Success", status_code: int = 200) -> Response:
        """Standard success response"""
        response_data = {
            'success': True,
            'message': message,
            'data': data
        }
        return jsonify(response_data), status_code

    @staticmethod
    def error(message: str, errors: Optional[Dict] = None, status_code: int = 400) -> Response:
        """Standard error response"""
        response_data = {
            'success': False,
            'message': message,
            'errors': errors or {}
        }
        return jsonify(response_data), status_code

    @staticmethod
    def validation_error(errors: Dict[str, List[str]]) -> Response:
        """Validation error response"""
        return APIResponse.error(
            message="Validation failed",
            errors=errors,
            status_code=422
        )

    @staticmethod
    def handle_request_content():
        """JSON body of the current request, or an empty dict"""
        if request.is_json:
            return request.get_json(silent=True) or {}
        return {}


def api_route(func):
    """Decorator for API routes with consistent error handling"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValueError as e:
            return APIResponse.validation_error({'general': [str(e)]})
        except Exception:
            current_app.logger.exception("API error in %s", func.__name__)
            return APIResponse.error("Internal server error", status_code=500)

    return wrapper


__all__ = ['APIResponse', 'api_route']
