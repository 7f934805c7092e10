"""Admin login for the settings screen.

Credentials come from ``HUB_ADMIN_USERNAME`` / ``HUB_ADMIN_PASSWORD``. With no
password configured every login is rejected.
"""

import base64
import hmac
import time

from .config import log
from . import config


def admin_login(username: str, password: str):
    """Return an opaque session token, or ``None`` for bad credentials."""
    expected_user = config.ADMIN_USERNAME
    expected_pass = config.ADMIN_PASSWORD
    if not expected_pass:
        log.warning("admin login attempted but HUB_ADMIN_PASSWORD is not set")
        return None

    user_ok = hmac.compare_digest((username or "").encode(), expected_user.encode())
    pass_ok = hmac.compare_digest((password or "").encode(), expected_pass.encode())
    if not (user_ok and pass_ok):
        log.info("admin login rejected for user=%s", username)
        return None

    raw = f"{username}:{int(time.time() * 1000)}"
    return base64.b64encode(raw.encode()).decode()
