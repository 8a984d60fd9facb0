# auth.py

import hashlib
import hmac
import logging
import secrets

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from errors import InvalidCredentials
from models import Admin

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000
SESSION_SALT = "admin-session"


def hash_password(password: str, salt: str = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, expected = stored.partition("$")
    candidate = hash_password(password, salt).partition("$")[2]
    return hmac.compare_digest(candidate, expected)


class AdminSession:
    """
    An authenticated admin, carried per request as a signed token.

    The token is produced by :meth:`dump` and checked by :meth:`load`; nothing
    about the login is kept in process state.
    """

    def __init__(self, username: str):
        self.username = username

    def dump(self, serializer: URLSafeTimedSerializer) -> str:
        return serializer.dumps({"admin": self.username}, salt=SESSION_SALT)

    @classmethod
    def load(cls, serializer: URLSafeTimedSerializer, token: str, max_age: int) -> "AdminSession":
        try:
            data = serializer.loads(token, salt=SESSION_SALT, max_age=max_age)
        except SignatureExpired:
            raise InvalidCredentials("Admin session has expired, please log in again")
        except BadSignature:
            raise InvalidCredentials("Invalid admin session token")
        if not isinstance(data, dict) or not data.get("admin"):
            raise InvalidCredentials("Invalid admin session token")
        return cls(data["admin"])


def ensure_default_admin(db: Session, username: str, password: str) -> bool:
    """Create the configured admin account unless it already exists."""
    if db.query(Admin).filter(Admin.username == username).first():
        return False
    db.add(Admin(username=username, password_hash=hash_password(password)))
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database commit failed while creating admin {username}: {e}")
        raise
    logger.info(f"Default admin {username} created.")
    return True


def authenticate_admin(db: Session, username: str, password: str) -> AdminSession:
    admin = db.query(Admin).filter(Admin.username == username).first()
    if admin is None or not verify_password(password, admin.password_hash):
        logger.warning(f"Failed admin login for {username}.")
        raise InvalidCredentials()
    logger.info(f"Admin {username} logged in.")
    return AdminSession(admin.username)
