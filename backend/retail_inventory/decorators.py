# Overview: Request decorators for API routes: actor resolution and engine error mapping.

from functools import wraps
from flask import current_app, g, jsonify

from .exceptions import InventoryError, ValidationError, http_status_for


def require_actor(f):
    """
    Resolve the acting user through the app's identity provider.

    Sets g.actor_id and g.actor_name. Returns 401 when the upstream session layer
    did not identify anyone.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = current_app.extensions["identity"]
        try:
            g.actor_id = identity.current_actor_id()
            g.actor_name = identity.current_actor_name()
        except ValidationError as e:
            return jsonify({"error": "Actor required", "details": {"reason": e.message}}), 401
        return f(*args, **kwargs)

    return decorated_function


def handle_engine_errors(action: str):
    """
    Map engine errors to JSON responses.

    Validation / stock errors carry their specific message; persistence and
    concurrency errors carry generic retry guidance. Anything else is logged and
    answered with a 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except InventoryError as e:
                return jsonify(e.to_dict()), http_status_for(e)
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
