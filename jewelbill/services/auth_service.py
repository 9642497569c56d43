"""Admin authentication: credential check and bearer tokens (JWT, HS256)."""
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from werkzeug.security import check_password_hash

from jewelbill.exceptions import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'


def verify_admin_credentials(email: str, password: str, config) -> bool:
    """
    Check credentials against the configured admin account.

    ADMIN_PASSWORD_HASH (werkzeug format) wins over a plain ADMIN_PASSWORD.
    """
    if not email or not password:
        return False
    if email.strip().lower() != (config.get('ADMIN_EMAIL') or '').lower():
        return False

    password_hash = config.get('ADMIN_PASSWORD_HASH')
    if password_hash:
        return check_password_hash(password_hash, password)
    expected = config.get('ADMIN_PASSWORD')
    if not expected:
        logger.warning("[AUTH] No admin password configured; login disabled")
        return False
    return hmac.compare_digest(expected.encode('utf-8'), password.encode('utf-8'))


def issue_token(email: str, config, role: str = ADMIN_ROLE) -> str:
    """Signed bearer token for the given identity."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': email,
        'role': role,
        'iat': now,
        'exp': now + timedelta(hours=config.get('JWT_EXPIRES_HOURS', 24)),
    }
    return jwt.encode(payload, config['SECRET_KEY'], algorithm=config.get('JWT_ALGORITHM', 'HS256'))


def decode_token(token: str, config) -> Dict[str, Any]:
    """
    Decode and verify a bearer token.

    Raises:
        UnauthorizedError: expired or invalid token
    """
    try:
        return jwt.decode(token, config['SECRET_KEY'], algorithms=[config.get('JWT_ALGORITHM', 'HS256')])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError('Token has expired')
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Invalid token')


def claims_from_header(authorization: str, config) -> Dict[str, Any]:
    """Claims of an admin 'Bearer <token>' header (401 / 403 otherwise)."""
    scheme, _, token = (authorization or '').partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        raise UnauthorizedError('Authentication required')
    claims = decode_token(token.strip(), config)
    if claims.get('role') != ADMIN_ROLE:
        raise ForbiddenError('Admin access required')
    return claims
