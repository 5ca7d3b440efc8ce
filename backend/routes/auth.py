"""
Authentication routes for the admin panel: login and token verification
"""

from flask import Blueprint, request, jsonify, g
import logging

from auth_utils import AuthNotConfiguredError, generate_admin_token, verify_admin_password
from middleware.auth_middleware import require_admin

logger = logging.getLogger(__name__)
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with the admin password

    Request body:
        {"password": "..."}

    Returns:
        200: {"token": "..."}
        400: Password missing
        401: Wrong password
        500: ADMIN_PASSWORD / JWT_SECRET not configured
    """
    data = request.get_json(silent=True) or {}
    password = data.get('password')

    if not password or not isinstance(password, str):
        return jsonify({'error': 'Password required'}), 400

    try:
        if not verify_admin_password(password):
            logger.warning("Failed admin login attempt")
            return jsonify({'error': 'Invalid password'}), 401

        token = generate_admin_token()
    except AuthNotConfiguredError as e:
        logger.error(f"[Auth] {e}")
        return jsonify({'error': 'Authentication not configured'}), 500

    logger.info("Admin logged in")
    return jsonify({'token': token}), 200


@auth_bp.route('/verify', methods=['GET'])
@require_admin
def verify():
    """
    Check that the bearer token is a valid admin token

    Returns:
        200: {"valid": true, "expires_at": <unix time>}
        401: Missing or invalid token
    """
    return jsonify({'valid': True, 'expires_at': g.admin_token.get('exp')}), 200
