"""Password hashing and random identifiers."""
import hashlib
import hmac
import secrets
import string

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 20


def hash_password(password: str, secret: str) -> str:
    """HMAC-SHA256 of ``password`` keyed with the application secret."""
    return hmac.new(secret.encode(), password.encode(), hashlib.sha256).hexdigest()


def verify_password(password: str, password_hash: str, secret: str) -> bool:
    return hmac.compare_digest(hash_password(password, secret), password_hash)


def random_id(length: int = TOKEN_LENGTH) -> str:
    """Random lowercase alphanumeric identifier."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
