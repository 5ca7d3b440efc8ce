"""
Authentication middleware for protecting Flask routes

This module provides decorators for:
- require_admin: Require a valid admin JWT
- require_cron_secret: Require CRON_SECRET as bearer token when it is configured
"""

import os
import secrets
import logging
from functools import wraps

from flask import request, jsonify, g

from auth_utils import ADMIN_TOKEN_TYPE, AuthNotConfiguredError, decode_token

logger = logging.getLogger(__name__)


def get_bearer_token():
    """
    Extract the token from an 'Authorization: Bearer <token>' header

    Returns:
        Token string, '' for a malformed header, or None when the header is absent
    """
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None

    parts = auth_header.split(' ')
    if len(parts) != 2 or parts[0] != 'Bearer':
        return ''
    return parts[1]


def require_admin(f):
    """
    Decorator to require a valid admin token

    Usage:
        @bp.route('/api/save-config', methods=['POST'])
        @require_admin
        def save_config():
            ...

    The decoded token payload is available as g.admin_token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_bearer_token()

        if token is None:
            return jsonify({'error': 'No authorization header'}), 401
        if not token:
            return jsonify({'error': 'Invalid authorization header format'}), 401

        try:
            payload = decode_token(token)
        except ValueError as e:
            return jsonify({'error': f'Invalid token: {str(e)}'}), 401
        except AuthNotConfiguredError as e:
            logger.error(f"Admin auth not configured: {e}")
            return jsonify({'error': 'Authentication not configured'}), 500

        if payload.get('type') != ADMIN_TOKEN_TYPE:
            return jsonify({'error': 'Invalid token type'}), 401

        g.admin_token = payload
        return f(*args, **kwargs)

    return decorated_function


def require_cron_secret(f):
    """
    Decorator for scheduler-triggered endpoints

    When CRON_SECRET is set, requests must carry it as a bearer token.
    When it is unset the endpoint is open.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        cron_secret = os.getenv('CRON_SECRET')
        if cron_secret:
            token = get_bearer_token() or ''
            if not secrets.compare_digest(token.encode('utf-8'), cron_secret.encode('utf-8')):
                logger.warning(f"Rejected unauthorized {request.method} {request.path}")
                return jsonify({'success': False, 'message': 'Unauthorized'}), 401

        return f(*args, **kwargs)

    return decorated_function
