import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    # Basic email format validation
    if not email or "@" not in email:
        return False
    return bool(_EMAIL_RE.match(email))