import os
import hmac
import base64
import logging
from typing import Optional

import bcrypt
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from fastapi import Header

from . import config
from .errors import UnauthorizedError

logger = logging.getLogger(__name__)

TOKEN_PAYLOAD = b'wordgroups-admin'


def _admin_secret() -> str:
    return os.getenv('ADMIN_PASSWORD_HASH') or os.getenv('ADMIN_PASSWORD') or ''


def _fernet() -> Fernet:
    """Fernet keyed by ADMIN_TOKEN_KEY, or derived from the admin secret."""
    key = os.getenv('ADMIN_TOKEN_KEY')
    if key:
        return Fernet(key.encode())
    secret = _admin_secret()
    if not secret:
        raise UnauthorizedError('Admin access is not configured')
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b'wordgroups_admin',
        iterations=100000,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))


def hash_password(password: str) -> str:
    """bcrypt hash suitable for ADMIN_PASSWORD_HASH."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_admin_password(password: str) -> bool:
    if not password:
        return False
    password_hash = os.getenv('ADMIN_PASSWORD_HASH')
    if password_hash:
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            logger.error("ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
            return False
    plain = os.getenv('ADMIN_PASSWORD')
    if not plain:
        logger.error("Admin login attempted but no admin password is configured")
        return False
    return hmac.compare_digest(password.encode(), plain.encode())


def login(password: str) -> dict:
    if not verify_admin_password(password):
        logger.warning("Failed admin login attempt")
        raise UnauthorizedError('Invalid password')
    logger.info("Admin logged in successfully")
    return {'token': issue_token(), 'expiresIn': config.admin_token_ttl()}


def issue_token() -> str:
    return _fernet().encrypt(TOKEN_PAYLOAD).decode()


def verify_token(token: Optional[str]) -> None:
    if not token:
        raise UnauthorizedError('No token provided')
    try:
        payload = _fernet().decrypt(token.encode(), ttl=config.admin_token_ttl())
    except InvalidToken:
        raise UnauthorizedError('Invalid or expired token')
    if payload != TOKEN_PAYLOAD:
        raise UnauthorizedError('Invalid or expired token')


def require_admin(authorization: Optional[str] = Header(None)) -> None:
    """FastAPI dependency guarding the admin routes."""
    token = None
    if authorization and authorization.startswith('Bearer '):
        token = authorization[len('Bearer '):].strip()
    verify_token(token)
