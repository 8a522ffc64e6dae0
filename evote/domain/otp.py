import secrets
import threading
import time
from typing import Callable, Dict, Optional, Tuple


def numeric_code(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class OtpStore:
    """
    Outstanding one-time codes keyed by voter identity number.

    A successful verification consumes the code and leaves a single-use
    ballot grant behind, which the vote endpoint spends.
    """

    def __init__(self, length: int = 6, ttl_seconds: int = 0,
                 code_factory: Optional[Callable[[], str]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.length = length
        self.ttl_seconds = ttl_seconds
        self.code_factory = code_factory or (lambda: numeric_code(self.length))
        self.clock = clock
        self._challenges: Dict[str, Tuple[str, float]] = {}
        self._grants: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _expired(self, issued_at: float) -> bool:
        return self.ttl_seconds > 0 and self.clock() - issued_at > self.ttl_seconds

    def issue(self, identity_number: str) -> str:
        code = self.code_factory()
        with self._lock:
            # A new login supersedes the previous challenge and any unspent grant.
            self._challenges[identity_number] = (code, self.clock())
            self._grants.pop(identity_number, None)
        return code

    def verify(self, identity_number: str, code: str) -> bool:
        with self._lock:
            challenge = self._challenges.get(identity_number)
            if challenge is None:
                return False
            expected, issued_at = challenge
            if self._expired(issued_at):
                del self._challenges[identity_number]
                return False
            if not secrets.compare_digest(str(code).encode(), expected.encode()):
                return False
            del self._challenges[identity_number]
            self._grants[identity_number] = self.clock()
            return True

    def has_challenge(self, identity_number: str) -> bool:
        with self._lock:
            return identity_number in self._challenges

    def has_grant(self, identity_number: str) -> bool:
        with self._lock:
            granted_at = self._grants.get(identity_number)
            if granted_at is None:
                return False
            if self._expired(granted_at):
                del self._grants[identity_number]
                return False
            return True

    def revoke_grant(self, identity_number: str):
        with self._lock:
            self._grants.pop(identity_number, None)

    def clear(self):
        with self._lock:
            self._challenges.clear()
            self._grants.clear()
