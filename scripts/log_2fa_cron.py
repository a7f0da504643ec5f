#!/usr/bin/env python3

import datetime
import logging

import pytz
from pydantic import ValidationError

from totp_errors import TotpError
from totp_host import ERROR_MESSAGE
from totp_models import TotpParameters

logger = logging.getLogger(__name__)


def format_line(code: str, now: datetime.datetime) -> str:
    timestamp = now.astimezone(pytz.utc).strftime("%Y-%m-%d %H:%M:%S")
    return f"{timestamp} - 2FA Code: {code}"


def main(environ=None, now=None) -> int:
    # 1. Read parameters from TOTP_SECRET / TOTP_ALGORITHM / TOTP_DIGITS
    try:
        params = TotpParameters.from_env(environ)
    except (TotpError, ValidationError) as e:
        logger.error("Invalid TOTP configuration: %s", e)
        print(ERROR_MESSAGE)
        return 1

    # 2. UTC timestamp
    if now is None:
        now = datetime.datetime.now(pytz.utc)

    # 3. Generate TOTP
    try:
        code = params.generate(now)
    except TotpError as e:
        logger.error("TOTP generation error (%s): %s", e.kind, e)
        print(ERROR_MESSAGE)
        return 1

    # 4. Output
    print(format_line(code, now))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(main())
