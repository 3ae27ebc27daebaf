import logging
import math
import time

from lms.config import OTP_BLOCK_SECONDS, OTP_MAX_ATTEMPTS, OTP_WINDOW_SECONDS
from lms.errors import TooManyRequestsError

from .ttl_store import TTLStore, default_store

logger = logging.getLogger("otp_guard")


class OtpBruteforceGuard:
    """Blocks an email after too many failed OTP verifications.

    Attempt records live in the TTL store under ``otp:attempts:<email>``;
    a block lives under ``otp:blocked:<email>`` and holds its expiry time.
    """

    def __init__(self, store: TTLStore, max_attempts=OTP_MAX_ATTEMPTS,
                 window_seconds=OTP_WINDOW_SECONDS, block_seconds=OTP_BLOCK_SECONDS,
                 clock=time.time):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self.clock = clock

    @staticmethod
    def _key(email: str) -> str:
        return email.lower().strip()

    def check(self, email: str) -> None:
        key = self._key(email)
        blocked_until = self.store.get(f"otp:blocked:{key}")
        if blocked_until is None:
            return
        remaining = math.ceil(blocked_until - self.clock())
        if remaining > 0:
            logger.warning(f"[OTP_BLOCKED] email={key} remaining={remaining}s")
            raise TooManyRequestsError(
                f"Too many failed OTP attempts. Please try again in {remaining} seconds."
            )

    def record_failed_attempt(self, email: str) -> None:
        key = self._key(email)
        count = (self.store.get(f"otp:attempts:{key}") or 0) + 1

        if count >= self.max_attempts:
            self.store.delete(f"otp:attempts:{key}")
            self.store.set(f"otp:blocked:{key}", self.clock() + self.block_seconds, self.block_seconds)
            logger.warning(f"[OTP_BLOCK_START] email={key} attempts={count}")
            return

        # window starts at the first failure and is not extended by later ones
        if count == 1:
            self.store.set(f"otp:attempts:{key}", count, self.window_seconds)
            self.store.set(f"otp:window:{key}", self.clock() + self.window_seconds, self.window_seconds)
        else:
            window_end = self.store.get(f"otp:window:{key}") or (self.clock() + self.window_seconds)
            self.store.set(f"otp:attempts:{key}", count, max(window_end - self.clock(), 0.001))

    def clear_attempts(self, email: str) -> None:
        key = self._key(email)
        self.store.delete(f"otp:attempts:{key}")
        self.store.delete(f"otp:window:{key}")
        self.store.delete(f"otp:blocked:{key}")


otp_guard = OtpBruteforceGuard(default_store)
