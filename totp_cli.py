import argparse
import logging
import sys
from typing import List, Optional, TextIO

from pydantic import ValidationError

from totp_errors import TotpError
from totp_host import ERROR_MESSAGE, TotpDisplay, TotpRefresher, current_code
from totp_models import TotpParameters
from totp_utils import DEFAULT_STEP, SUPPORTED_DIGITS, HashAlgorithm, hex_seed_to_base32

logger = logging.getLogger(__name__)

BAR_WIDTH = 30


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="totp-generator",
        description="Print the current TOTP code (RFC 6238) for a base32 secret.",
    )
    secret_group = parser.add_mutually_exclusive_group()
    secret_group.add_argument("--secret", help="base32 secret (default: $TOTP_SECRET)")
    secret_group.add_argument("--hex-seed", help="hex encoded seed, converted to base32")
    parser.add_argument(
        "--algorithm",
        type=str.upper,
        choices=[algorithm.value for algorithm in HashAlgorithm],
        help="HMAC hash (default: $TOTP_ALGORITHM or SHA1)",
    )
    parser.add_argument(
        "--digits",
        type=int,
        choices=SUPPORTED_DIGITS,
        help="code length (default: $TOTP_DIGITS or 6)",
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--time", type=float, help="seconds since the epoch instead of now")
    mode_group.add_argument("--watch", action="store_true", help="keep refreshing until interrupted")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def load_parameters(args: argparse.Namespace) -> TotpParameters:
    secret = args.secret
    if args.hex_seed is not None:
        secret = hex_seed_to_base32(args.hex_seed)
    return TotpParameters.from_env(secret=secret, algorithm=args.algorithm, digits=args.digits)


def format_display(display: TotpDisplay) -> str:
    filled = BAR_WIDTH * display.seconds_left // DEFAULT_STEP
    bar = "█" * filled + "░" * (BAR_WIDTH - filled)
    return f"\r  Code: {display.text}  |  {bar}  {display.seconds_left:2d}s  "


def watch(params: TotpParameters, out: TextIO = sys.stdout) -> None:
    last_text = None

    def show(display: TotpDisplay) -> None:
        nonlocal last_text
        if display.text != last_text:
            if last_text is not None:
                print(file=out)
            last_text = display.text
        print(format_display(display), end="", file=out, flush=True)

    refresher = TotpRefresher(params, on_update=show)
    try:
        refresher.run()
    except KeyboardInterrupt:
        print("\n\nDone!", file=out)
    finally:
        refresher.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        params = load_parameters(args)
    except (TotpError, ValidationError) as e:
        logger.error("Invalid parameters: %s", e)
        print(ERROR_MESSAGE, file=sys.stderr)
        return 1

    if args.watch:
        watch(params)
        return 0

    try:
        result = current_code(params, args.time)
    except TotpError as e:
        logger.error("TOTP generation failed (%s): %s", e.kind, e)
        print(ERROR_MESSAGE, file=sys.stderr)
        return 1

    print(f"Current TOTP code: {result.code} (valid for {result.valid_for}s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
