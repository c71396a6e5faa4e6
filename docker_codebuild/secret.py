from dataclasses import dataclass
from typing import Optional
import os

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

DEFAULT_HEADER_NAME = "X-From-CloudFront"
DEFAULT_SECRET_LENGTH = 8
# longest value an ALB http-header condition accepts
MAX_SECRET_LENGTH = 128


def generate_random_string(length: int) -> str:
    """
    Returns ``length`` characters of ALPHABET, one per random byte.

    Each byte is reduced modulo 62, so lower alphabet indices are slightly
    more likely than higher ones. The value is a capability token checked by
    the load balancer, not a key.
    """
    if length < 0:
        raise ValueError("length must not be negative")
    random_bytes = os.urandom(length)
    return "".join(ALPHABET[byte % len(ALPHABET)] for byte in random_bytes)


def check_secret_value(value: str) -> str:
    """
    Reject values the listener rule would not compare literally.

    ALB header conditions treat ``*`` and ``?`` as wildcards, so only
    ALPHABET characters are allowed, up to MAX_SECRET_LENGTH of them.
    """
    if not value:
        raise ValueError("secret value must not be empty")
    if len(value) > MAX_SECRET_LENGTH:
        raise ValueError(f"secret value must be at most {MAX_SECRET_LENGTH} characters")
    if set(value) - set(ALPHABET):
        raise ValueError("secret value may only contain letters and digits")
    return value


def check_secret_length(length: int) -> int:
    if not 1 <= length <= MAX_SECRET_LENGTH:
        raise ValueError(f"secret length must be between 1 and {MAX_SECRET_LENGTH}")
    return length


@dataclass(frozen=True)
class OriginSecret:
    header_name: str
    value: str

    def __repr__(self) -> str:
        # keep the value out of logs and tracebacks
        return f"OriginSecret(header_name={self.header_name!r}, value='***')"


def create_origin_secret(
    header_name: str = DEFAULT_HEADER_NAME,
    length: int = DEFAULT_SECRET_LENGTH,
    value: Optional[str] = None,
) -> OriginSecret:
    """Create the shared secret once per deployment definition."""
    if not header_name:
        raise ValueError("header_name must not be empty")
    if value is None:
        value = generate_random_string(check_secret_length(length))
    return OriginSecret(header_name=header_name, value=check_secret_value(value))
