"""Request guards."""
from functools import wraps

from flask import current_app, g, request

from jewelbill.services.auth_service import claims_from_header


def require_admin(f):
    """
    Decorator: require an admin bearer token.

    401 when the token is missing or invalid, 403 when it is valid but not
    an admin token. Sets g.admin_email for the view.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        claims = claims_from_header(request.headers.get('Authorization', ''), current_app.config)
        g.admin_email = claims.get('sub')
        return f(*args, **kwargs)
    return decorated_function
