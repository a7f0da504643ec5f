"""
Errors raised while generating a TOTP code.

Every error subclasses ValueError, so pydantic validators that call into
the generator report them as ordinary validation failures.
"""


class TotpError(ValueError):
    """Base class for every failure of the code generation pipeline."""

    kind = "TotpError"


class InvalidEncodingError(TotpError):
    kind = "InvalidEncoding"


class EmptySecretError(TotpError):
    kind = "EmptySecret"


class InvalidTimeError(TotpError):
    kind = "InvalidTime"


class DigestTooShortError(TotpError):
    """
    The selected hash produced fewer bytes than dynamic truncation reads.

    Cannot happen with SHA1, SHA256 or SHA512; seeing it means a bug.
    """

    kind = "DigestTooShort"


class UnsupportedDigitCountError(TotpError):
    kind = "UnsupportedDigitCount"


class UnsupportedAlgorithmError(TotpError):
    kind = "UnsupportedAlgorithm"
