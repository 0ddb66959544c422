import re
import uuid

import bcrypt

from app.core.config import settings

_HTML_TAG_RE = re.compile(r"<[^>]*>")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def generate_link_id() -> str:
    """Generate an unguessable id for link-only student pages"""
    return str(uuid.uuid4())


def strip_html(value: str) -> str:
    """Remove HTML tags from user supplied text"""
    return _HTML_TAG_RE.sub("", value or "")
