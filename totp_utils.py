import base64
import binascii
import math
import struct
import time
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, hmac

from totp_errors import (
    DigestTooShortError,
    EmptySecretError,
    InvalidEncodingError,
    InvalidTimeError,
    UnsupportedAlgorithmError,
    UnsupportedDigitCountError,
)

DEFAULT_STEP = 30
DEFAULT_DIGITS = 6
SUPPORTED_DIGITS = (6, 7, 8)

# Dynamic truncation reads 4 bytes at an offset of at most 15.
MIN_DIGEST_SIZE = 19
MAX_COUNTER = 2**64 - 1

TimeInput = Union[int, float, datetime]


class HashAlgorithm(str, Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @classmethod
    def from_name(cls, name: Union[str, "HashAlgorithm"]) -> "HashAlgorithm":
        """
        Resolve an algorithm from its enum member or its name ("sha256" works too)
        """
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            try:
                return cls(name.upper())
            except ValueError:
                pass
        raise UnsupportedAlgorithmError(
            f"Unsupported hash algorithm {name!r}, must be SHA1, SHA256 or SHA512"
        )

    def hash_primitive(self) -> hashes.HashAlgorithm:
        return _HASH_PRIMITIVES[self]()

    @property
    def digest_size(self) -> int:
        return self.hash_primitive().digest_size


_HASH_PRIMITIVES = {
    HashAlgorithm.SHA1: hashes.SHA1,
    HashAlgorithm.SHA256: hashes.SHA256,
    HashAlgorithm.SHA512: hashes.SHA512,
}


def hex_seed_to_base32(hex_seed: str) -> str:
    """
    Helper: convert a hex seed to a base32 secret string
    """
    # 1. Convert hex to bytes
    try:
        seed_bytes = bytes.fromhex(hex_seed)
    except (TypeError, ValueError) as e:
        raise InvalidEncodingError(f"Seed is not valid hex: {e}") from e

    # 2. Convert bytes to base32 (returns bytes)
    base32_bytes = base64.b32encode(seed_bytes)

    # 3. Convert to string
    return base32_bytes.decode("ascii")


def decode_secret(secret: str) -> bytes:
    """
    Decode a base32 secret (RFC 4648 alphabet, uppercase) into key bytes.

    Padding is optional, but a secret that carries "=" must be padded
    correctly. Nothing is stripped or case-folded.

    Raises:
        InvalidEncodingError: the text is not valid base32
        EmptySecretError: the text decodes to zero bytes
    """
    if not isinstance(secret, str):
        raise InvalidEncodingError("Secret must be a base32 string")

    padded = secret
    if "=" not in secret:
        missing_padding = len(secret) % 8
        if missing_padding != 0:
            padded += "=" * (8 - missing_padding)

    try:
        key = base64.b32decode(padded)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncodingError(f"Secret is not valid base32: {e}") from e

    if not key:
        raise EmptySecretError("Secret decodes to an empty key")
    return key


def _check_step(step: int) -> int:
    if isinstance(step, bool) or not isinstance(step, int) or step <= 0:
        raise InvalidTimeError(f"Time step must be a positive number of seconds, got {step!r}")
    return step


def _to_seconds(for_time: Optional[TimeInput]) -> float:
    if for_time is None:
        return time.time()
    if isinstance(for_time, datetime):
        try:
            seconds = for_time.timestamp()
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidTimeError(f"Time {for_time!r} is outside the supported range") from e
    elif isinstance(for_time, (int, float)) and not isinstance(for_time, bool):
        seconds = for_time
    else:
        raise InvalidTimeError(f"Unsupported time value {for_time!r}")

    # ints stay exact; only floats can be nan or inf
    if (isinstance(seconds, float) and not math.isfinite(seconds)) or seconds < 0:
        raise InvalidTimeError(f"Time must be a non-negative number of seconds since the epoch, got {seconds!r}")
    return seconds


def timecode(for_time: TimeInput, step: int = DEFAULT_STEP) -> int:
    """
    Number of whole time steps elapsed since the Unix epoch.

    Args:
        for_time: seconds since the epoch, or a datetime
        step: length of one time step in seconds

    Returns:
        floor(seconds / step)
    """
    _check_step(step)
    counter = int(_to_seconds(for_time) // step)
    if counter > MAX_COUNTER:
        raise InvalidTimeError("Time step counter does not fit in 64 bits")
    return counter


def int_to_bytestring(counter: int) -> bytes:
    """
    Encode a counter as the 8-byte big-endian message fed to the HMAC
    """
    if isinstance(counter, bool) or not isinstance(counter, int):
        raise InvalidTimeError(f"Counter must be an integer, got {counter!r}")
    if counter < 0 or counter > MAX_COUNTER:
        raise InvalidTimeError(f"Counter {counter} is outside the unsigned 64-bit range")
    return struct.pack(">Q", counter)


def encode_time_step(for_time: TimeInput, step: int = DEFAULT_STEP) -> bytes:
    return int_to_bytestring(timecode(for_time, step))


def seconds_remaining(for_time: Optional[TimeInput] = None, step: int = DEFAULT_STEP) -> int:
    """
    Seconds until the current code expires, between 1 and step
    """
    _check_step(step)
    return step - int(_to_seconds(for_time)) % step


def hmac_digest(key: bytes, message: bytes, algorithm: Union[str, HashAlgorithm] = HashAlgorithm.SHA1) -> bytes:
    """
    HMAC (RFC 2104) of message under key with the selected hash
    """
    mac = hmac.HMAC(key, HashAlgorithm.from_name(algorithm).hash_primitive())
    mac.update(message)
    return mac.finalize()


def truncate(digest: bytes) -> int:
    """
    Dynamic truncation (RFC 4226 section 5.3).

    The low nibble of the last byte picks an offset; the four bytes starting
    there are read big-endian with the top bit cleared.

    Returns:
        integer in [0, 2**31 - 1]
    """
    if len(digest) < MIN_DIGEST_SIZE:
        raise DigestTooShortError(
            f"Digest is {len(digest)} bytes, dynamic truncation needs at least {MIN_DIGEST_SIZE}"
        )

    offset = digest[-1] & 0x0F
    return (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )


def check_digits(digits: int) -> int:
    if isinstance(digits, bool) or not isinstance(digits, int) or digits not in SUPPORTED_DIGITS:
        raise UnsupportedDigitCountError(f"Digits may only be 6, 7, or 8, got {digits!r}")
    return digits


def format_code(value: int, digits: int = DEFAULT_DIGITS) -> str:
    """
    Render value mod 10**digits as exactly `digits` decimal characters
    """
    check_digits(digits)
    return str(value % 10**digits).zfill(digits)


def _code_from_key(key: bytes, message: bytes, algorithm: Union[str, HashAlgorithm], digits: int) -> str:
    digest = hmac_digest(key, message, algorithm)
    return format_code(truncate(digest), digits)


def generate_hotp_code(
    secret: str,
    counter: int,
    algorithm: Union[str, HashAlgorithm] = HashAlgorithm.SHA1,
    digits: int = DEFAULT_DIGITS,
) -> str:
    """
    Generate the HOTP code (RFC 4226) for a counter value

    Args:
        secret: base32 secret
        counter: HMAC counter, 0 <= counter < 2**64
        algorithm: SHA1, SHA256 or SHA512
        digits: 6, 7 or 8

    Returns:
        zero-padded code of exactly `digits` characters
    """
    key = decode_secret(secret)
    message = int_to_bytestring(counter)
    return _code_from_key(key, message, algorithm, digits)


def generate_totp_code(
    secret: str,
    algorithm: Union[str, HashAlgorithm] = HashAlgorithm.SHA1,
    digits: int = DEFAULT_DIGITS,
    for_time: Optional[TimeInput] = None,
    step: int = DEFAULT_STEP,
) -> str:
    """
    Generate the TOTP code (RFC 6238) for a point in time

    Args:
        secret: base32 secret, e.g. "JBSWY3DPEHPK3PXP"
        algorithm: SHA1, SHA256 or SHA512
        digits: 6, 7 or 8
        for_time: seconds since the epoch or a datetime; defaults to now
        step: time step in seconds

    Returns:
        zero-padded code of exactly `digits` characters

    Raises:
        TotpError: the first stage that fails; no partial code is returned
    """
    # 1. Secret text -> key bytes
    key = decode_secret(secret)

    # 2. Time -> 8-byte counter
    if for_time is None:
        for_time = time.time()
    message = encode_time_step(for_time, step)

    # 3-5. HMAC, dynamic truncation, decimal code
    return _code_from_key(key, message, algorithm, digits)
