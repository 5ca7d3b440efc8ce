"""
Authentication utilities for the admin panel

This module provides:
- Admin password verification against ADMIN_PASSWORD
- JWT admin token generation (24 hour expiry)
- Token validation and decoding
"""

import os
import jwt
import secrets
from datetime import datetime, timedelta, timezone

JWT_ALGORITHM = 'HS256'
ADMIN_TOKEN_EXPIRY = timedelta(hours=24)
ADMIN_TOKEN_TYPE = 'admin'


class AuthNotConfiguredError(Exception):
    """Raised when ADMIN_PASSWORD or JWT_SECRET is not set"""


def get_jwt_secret() -> str:
    """
    Read JWT_SECRET from the environment

    Raises:
        AuthNotConfiguredError: If JWT_SECRET is not set
    """
    secret = os.getenv('JWT_SECRET')
    if not secret:
        raise AuthNotConfiguredError("JWT_SECRET environment variable must be set")
    return secret


def verify_admin_password(password: str) -> bool:
    """
    Check a password against ADMIN_PASSWORD (constant-time comparison)

    Raises:
        AuthNotConfiguredError: If ADMIN_PASSWORD is not set
    """
    admin_password = os.getenv('ADMIN_PASSWORD')
    if not admin_password:
        raise AuthNotConfiguredError("ADMIN_PASSWORD environment variable must be set")
    return secrets.compare_digest(password.encode('utf-8'), admin_password.encode('utf-8'))


def generate_admin_token() -> str:
    """
    Generate JWT admin token (24 hours expiry)

    Returns:
        JWT token as string
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': 'admin',
        'exp': now + ADMIN_TOKEN_EXPIRY,
        'iat': now,
        'type': ADMIN_TOKEN_TYPE
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        ValueError: If token is expired or invalid
    """
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ValueError('Token has expired')
    except jwt.InvalidTokenError:
        raise ValueError('Invalid token')
