import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    """
    Convert a raw Cookie header string into a dict for httpx.

    Accepts the full "key=value; key2=value2" header; ignores malformed pairs.
    """
    if not cookie_header:
        return {}

    cookie_jar: dict[str, str] = {}
    for part in cookie_header.split(";"):
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        name = name.strip()
        value = value.strip()
        if name:
            cookie_jar[name] = value
    return cookie_jar


@dataclass(frozen=True)
class Credentials:
    """Either an email/password pair or a previously established cookie header."""

    email: str | None = None
    password: str | None = field(default=None, repr=False)
    cookie: str | None = field(default=None, repr=False)

    def __post_init__(self):
        has_login = bool(self.email and self.password)
        if has_login == bool(self.cookie):
            raise ValueError("Provide either email and password, or a session cookie")

    @property
    def uses_cookie(self) -> bool:
        return bool(self.cookie)


@dataclass
class SessionContext:
    """Coordinates discovered at bootstrap; needed by every API call."""

    api_root: str | None = None
    build_id: str | None = None
    endpoint_identifiers: dict[str, str] = field(default_factory=dict)
    auth_tokens: dict[str, str] = field(default_factory=dict)
    models: dict = field(default_factory=dict, repr=False)

    @property
    def is_bootstrapped(self) -> bool:
        return self.api_root is not None

    def auth_token(self, bootstrap_url: str) -> str | None:
        return self.auth_tokens.get(bootstrap_url)


class SessionGuard:
    """
    Readers-writer lock for one session.

    Any number of readers may hold the guard together; a writer waits for them
    to leave and then excludes everyone. New readers queue behind a waiting
    writer, but a thread that already holds the guard may take it again: a
    reader re-enters as reader, and the writing thread re-enters as reader or
    writer, so a profile switch can make API calls and re-bootstrap while it
    holds the guard. Upgrading a read to a write raises ``RuntimeError``.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._local = threading.local()
        self._readers = 0
        self._writer: int | None = None
        self._writer_depth = 0
        self._waiting_writers = 0

    def _owns_write(self) -> bool:
        return self._writer == threading.get_ident()

    def _read_depth(self) -> int:
        return getattr(self._local, "read_depth", 0)

    @contextmanager
    def read(self):
        with self._cond:
            if self._owns_write():
                self._writer_depth += 1
                reentrant_write = True
            else:
                reentrant_write = False
                if not self._read_depth():
                    while self._writer is not None or self._waiting_writers:
                        self._cond.wait()
                    self._readers += 1
                self._local.read_depth = self._read_depth() + 1
        try:
            yield
        finally:
            with self._cond:
                if reentrant_write:
                    self._writer_depth -= 1
                else:
                    self._local.read_depth -= 1
                    if not self._local.read_depth:
                        self._readers -= 1
                        if self._readers == 0:
                            self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            if self._owns_write():
                self._writer_depth += 1
            elif self._read_depth():
                raise RuntimeError("Cannot take the session write guard while holding its read guard")
            else:
                self._waiting_writers += 1
                try:
                    while self._writer is not None or self._readers:
                        self._cond.wait()
                finally:
                    self._waiting_writers -= 1
                self._writer = threading.get_ident()
                self._writer_depth = 1
        try:
            yield
        finally:
            with self._cond:
                self._writer_depth -= 1
                if self._writer_depth == 0:
                    self._writer = None
                    self._cond.notify_all()
