# oss_booking/domain/passes.py

import re
import secrets

PASS_ID_PREFIX = "OSS-EV-"
PASS_ID_LENGTH = 8

# Uppercase letters and digits minus 0, 1, I and O, which get misread at the door.
PASS_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

PASS_ID_PATTERN = re.compile(r"OSS-EV-[A-Z0-9]{8}")


def generate_secure_id(length: int, alphabet: str) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_pass_id() -> str:
    return PASS_ID_PREFIX + generate_secure_id(PASS_ID_LENGTH, PASS_ID_ALPHABET)


def is_valid_pass_id(pass_id: str | None) -> bool:
    if not pass_id:
        return False
    return PASS_ID_PATTERN.fullmatch(pass_id) is not None


def build_verify_url(app_base_url: str, pass_id: str) -> str:
    return f"{app_base_url.rstrip('/')}/verify?passId={pass_id}"
