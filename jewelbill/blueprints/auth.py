"""Authentication blueprint: admin login returning a bearer token."""
import logging

from flask import Blueprint, current_app, jsonify, request

from jewelbill.exceptions import UnauthorizedError, ValidationError
from jewelbill.services.auth_service import issue_token, verify_admin_credentials

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange admin email/password for a bearer token."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    errors = {}
    if not email:
        errors['email'] = 'This field is required'
    if not password:
        errors['password'] = 'This field is required'
    if errors:
        raise ValidationError(errors, message='Invalid login data')

    if not verify_admin_credentials(email, password, current_app.config):
        logger.warning(f"[AUTH] Failed login for {email}")
        raise UnauthorizedError('Invalid email or password')

    token = issue_token(email, current_app.config)
    logger.info(f"[AUTH] Admin login: {email}")
    return jsonify({
        'token': token,
        'tokenType': 'Bearer',
        'expiresInHours': current_app.config.get('JWT_EXPIRES_HOURS', 24),
        'user': {'email': email, 'role': 'admin'},
    })
