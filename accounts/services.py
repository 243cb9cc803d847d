# accounts/services.py

import logging
from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)


def verify_token(token):
    """
    Checks a bearer token and returns its decoded claims, or None if
    the token is missing, malformed, expired or badly signed. Never
    raises: callers only need to know "who is this" or "nobody".
    """
    if not token:
        logger.warning('JWT verification failed: no token supplied')
        return None
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.warning('JWT verification failed: %s', e)
        return None


def issue_token(user_id, email=None, manager_id=None, expires_in=None):
    """
    Signs a token for a user, carrying the same claims the rest of the
    platform puts in its login tokens ('userId', plus optional
    'email' and 'managerId').
    """
    if expires_in is None:
        expires_in = settings.JWT_EXPIRES_SECONDS
    now = datetime.now(timezone.utc)
    claims = {
        'userId': user_id,
        'iat': now,
        'exp': now + timedelta(seconds=expires_in),
    }
    if email:
        claims['email'] = email
    if manager_id is not None:
        claims['managerId'] = manager_id
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
