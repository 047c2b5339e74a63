# Overview: Request decorators for API routes; caller resolution and view auditing.

from functools import wraps

from flask import g, request

from .errors import AUTH_MISSING, AuthenticationError, ServiceError
from .responses import from_service_error
from .services import activity_service, session_service
from .services.policy_service import CallerIdentity


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer token and establish the caller.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated User row
    - g.caller: CallerIdentity handed to the policy and services
    - g.session_token: the plaintext token (for logout)

    SECURITY: Returns 401 with code AUTH_MISSING, AUTH_INVALID, AUTH_EXPIRED
    or AUTH_INACTIVE before any route code runs.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return from_service_error(AuthenticationError("Authentication required", code=AUTH_MISSING))

        try:
            user, _session = session_service.resolve_caller(token)
        except ServiceError as exc:
            return from_service_error(exc)

        g.current_user = user
        g.caller = CallerIdentity.from_user(user)
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def log_activity(action: str, category: str, describe):
    """
    Record a sensitive-view entry after a successful response.

    describe(kwargs) -> str builds the description from the view arguments.
    Runs after the view, so failed or denied requests are not recorded here.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            response = f(*args, **kwargs)
            status = response[1] if isinstance(response, tuple) else getattr(response, "status_code", 200)
            caller = getattr(g, "caller", None)
            if caller is not None and 200 <= status < 300:
                activity_service.record(
                    action=action,
                    description=describe(kwargs),
                    category=category,
                    performed_by_id=caller.id,
                    user_id=kwargs.get("user_id"),
                    shop_id=kwargs.get("shop_id", caller.shop_id),
                    device_id=kwargs.get("device_id"),
                    metadata={"path": request.path, "query": request.args.to_dict()},
                )
            return response

        return decorated_function
    return decorator
