from cryptography.fernet import Fernet, InvalidToken
import structlog
from studio.config import settings

logger = structlog.get_logger(__name__)

# Without FERNET_KEY tokens are stored as-is.
def _fernet() -> Fernet | None:
    if not settings.fernet_key:
        return None
    return Fernet(settings.fernet_key.encode())

def encrypt_token(plain: str | None) -> str | None:
    if plain is None:
        return None
    f = _fernet()
    if f is None:
        return plain
    return f.encrypt(plain.encode()).decode()

def decrypt_token(cipher: str | None) -> str | None:
    if cipher is None:
        return None
    f = _fernet()
    if f is None:
        return cipher
    try:
        return f.decrypt(cipher.encode()).decode()
    except (TypeError, InvalidToken) as e:
        # caller maps this to "reconnect"
        logger.warning("token_decrypt_failed", error=type(e).__name__)
        raise
