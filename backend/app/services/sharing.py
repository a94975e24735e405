import secrets
import string

SHARE_ID_ALPHABET = string.ascii_letters + string.digits
SHARE_ID_LENGTH = 8


def generate_share_id(length: int = SHARE_ID_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(length))


def build_share_url(base_url: str, share_id: str) -> str:
    return f"{base_url.rstrip('/')}/chart/{share_id}"
