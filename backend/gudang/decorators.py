# Overview: Request decorators for API routes (access scope + service error translation).

from functools import wraps
from flask import current_app, g, jsonify, request

from .services.access_service import resolve_request_scope
from .services.concurrency import RetryableError
from .validation import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    ConflictError,
    ForbiddenLocationError,
)


def require_access_scope(f):
    """
    Resolve the caller's AccessScope and store it on flask.g.

    Sets:
    - g.access_scope: roles and accessible outlets from ACCESS_SCOPE_RESOLVER
      (full access when no resolver is configured)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.access_scope = resolve_request_scope(current_app, request)
        return f(*args, **kwargs)

    return decorated_function


def json_errors(f):
    """
    Translate service exceptions into {"error": ...} responses.

    ValidationError 400, ForbiddenLocationError 403, NotFoundError 404,
    InsufficientStockError / ConflictError 409, RetryableError 503.
    Anything else is logged and returned as 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except ForbiddenLocationError as e:
            return jsonify({"error": str(e)}), 403
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except InsufficientStockError as e:
            return jsonify({
                "error": str(e),
                "available": e.available,
                "requested": e.requested,
            }), 409
        except ConflictError as e:
            return jsonify({"error": str(e)}), 409
        except RetryableError as e:
            return jsonify({"error": str(e)}), 503
        except Exception:
            current_app.logger.exception("Failed to handle %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
