"""
Host side of the generator: turns parameters into something to display and
keeps it fresh.

A desktop front end is a window with a code label and a progress bar that a
background loop refreshes once a second. TotpRefresher is that loop without
the widgets: it calls ``on_update`` with a TotpDisplay every tick and
regenerates the code whenever the 30 second window rolls over or the
parameters change.
"""

import logging
import threading
import time
from typing import Callable, NamedTuple, Optional

from totp_errors import DigestTooShortError, TotpError
from totp_models import TotpCode, TotpParameters
from totp_utils import DEFAULT_STEP, TimeInput, seconds_remaining, timecode

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error Generating TOTP"


def current_code(params: TotpParameters, for_time: Optional[TimeInput] = None) -> TotpCode:
    """
    Generate the code for `for_time` (default: now) with how long it stays valid.
    Raises TotpError on failure.
    """
    if for_time is None:
        for_time = time.time()
    code = params.generate(for_time)
    return TotpCode(code=code, valid_for=seconds_remaining(for_time))


def render_code(params: TotpParameters, for_time: Optional[TimeInput] = None) -> str:
    """
    Code to show to the user, or ERROR_MESSAGE. The error kind is logged,
    never displayed.
    """
    try:
        return params.generate(for_time)
    except DigestTooShortError:
        logger.exception("TOTP generation hit an internal error")
        return ERROR_MESSAGE
    except TotpError as e:
        logger.warning("TOTP generation failed (%s): %s", e.kind, e)
        return ERROR_MESSAGE


class TotpDisplay(NamedTuple):
    text: str
    seconds_left: int
    progress: float


class TotpRefresher:
    """
    Periodic refresh of the displayed code.

    Args:
        params: initial parameters
        on_update: called with a TotpDisplay on every tick
        tick_seconds: display granularity
        clock: returns seconds since the epoch; injectable for tests
    """

    def __init__(
        self,
        params: TotpParameters,
        on_update: Callable[[TotpDisplay], None],
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.on_update = on_update
        self.tick_seconds = tick_seconds
        self.clock = clock
        self._params = params
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._window: Optional[int] = None
        self._text = ""

    @property
    def params(self) -> TotpParameters:
        with self._lock:
            return self._params

    def update(self, params: TotpParameters) -> TotpDisplay:
        """Swap the parameters and regenerate straight away."""
        with self._lock:
            self._params = params
            self._window = None
        return self.tick()

    def tick(self) -> TotpDisplay:
        now = self.clock()
        try:
            window = timecode(now, DEFAULT_STEP)
            seconds_left = seconds_remaining(now)
        except TotpError as e:
            logger.warning("Clock returned an unusable time (%s): %s", e.kind, e)
            window = None
            seconds_left = DEFAULT_STEP

        with self._lock:
            params = self._params
            if window is None:
                self._text = ERROR_MESSAGE
            elif window != self._window:
                self._text = render_code(params, now)
                logger.debug("Regenerated code for time step %d", window)
            self._window = window
            text = self._text

        display = TotpDisplay(
            text=text,
            seconds_left=seconds_left,
            progress=(DEFAULT_STEP - seconds_left) / DEFAULT_STEP,
        )
        self.on_update(display)
        return display

    def run(self) -> None:
        """Tick until stop() is called. Blocks the calling thread."""
        self.tick()
        while not self._stop_event.wait(self.tick_seconds):
            self.tick()

    def start(self) -> "TotpRefresher":
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Refresher is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="totp-refresher", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> "TotpRefresher":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
