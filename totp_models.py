import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

from totp_utils import (
    DEFAULT_DIGITS,
    DEFAULT_STEP,
    HashAlgorithm,
    TimeInput,
    check_digits,
    generate_totp_code,
)

DEFAULT_SECRET = "JBSWY3DPEHPK3PXP"


# ---------- Parameters ----------

class TotpParameters(BaseModel):
    """
    Everything needed to generate a code, passed explicitly on every refresh.
    The secret itself is only checked when a code is generated.
    """

    model_config = ConfigDict(frozen=True)

    secret: SecretStr = SecretStr(DEFAULT_SECRET)
    algorithm: HashAlgorithm = HashAlgorithm.SHA1
    digits: int = DEFAULT_DIGITS

    @field_validator("algorithm", mode="before")
    @classmethod
    def _resolve_algorithm(cls, value):
        return HashAlgorithm.from_name(value)

    @field_validator("digits")
    @classmethod
    def _supported_digits(cls, value: int) -> int:
        return check_digits(value)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "TotpParameters":
        """
        Build parameters from TOTP_SECRET, TOTP_ALGORITHM and TOTP_DIGITS.
        Keyword overrides that are not None win over the environment.
        """
        if environ is None:
            environ = os.environ

        data = {}
        if environ.get("TOTP_SECRET"):
            data["secret"] = environ["TOTP_SECRET"]
        if environ.get("TOTP_ALGORITHM"):
            data["algorithm"] = environ["TOTP_ALGORITHM"]
        if environ.get("TOTP_DIGITS"):
            data["digits"] = environ["TOTP_DIGITS"]

        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**data)

    def generate(self, for_time: Optional[TimeInput] = None, step: int = DEFAULT_STEP) -> str:
        return generate_totp_code(
            self.secret.get_secret_value(),
            algorithm=self.algorithm,
            digits=self.digits,
            for_time=for_time,
            step=step,
        )


# ---------- Results ----------

class TotpCode(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    valid_for: int
