# greenmarket/utils/security.py
import hashlib
import hmac
import time
from typing import Optional
from ..config import Config
from ..models.user import CurrentUser, UserRole

def _sign(message: str) -> str:
    return hmac.new(
        Config.SECRET_KEY.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()

def generate_access_token(user_id: int, role: UserRole, issued_at: Optional[int] = None) -> str:
    """Issue a signed bearer token"""
    timestamp = int(time.time()) if issued_at is None else issued_at
    message = f"{user_id}:{UserRole(role).value}:{timestamp}"
    return f"{message}:{_sign(message)}"

def verify_access_token(token: str) -> Optional[CurrentUser]:
    """Return the token's identity, or None when it is forged or expired"""
    if not Config.SECRET_KEY:
        return None
    try:
        message, signature = token.rsplit(':', 1)
        user_id, role, timestamp = message.split(':')

        if not hmac.compare_digest(signature, _sign(message)):
            return None

        if int(time.time()) - int(timestamp) > Config.TOKEN_TTL_SECONDS:
            return None

        return CurrentUser(user_id=int(user_id), role=UserRole(role))

    except ValueError:
        return None
