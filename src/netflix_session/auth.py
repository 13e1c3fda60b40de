"""
Login and context bootstrap.

The flow walks a fixed sequence of states::

    UNAUTHENTICATED -> FETCHING_LOGIN_FORM -> SUBMITTING_LOGIN_FORM
                    -> BOOTSTRAPPING_CONTEXT -> AUTHENTICATED

Cookie credentials skip the two form states. Any failure moves the flow to
FAILED; the detailed error goes to the log and the caller gets one
``LoginError``.
"""
import logging
from enum import Enum

import httpx

from . import resolver
from .config import BOOTSTRAP_URLS, LOGIN_URL
from .exceptions import (
    BootstrapError,
    HttpError,
    LoginError,
    LoginRejected,
    TooManyAttemptsOrBadCredentials,
    TransportError,
    describe,
    error_kind,
)
from .extractor import extract_context, extract_login_message, serialize_login_form
from .session import Credentials, SessionContext, parse_cookie_header

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FETCHING_LOGIN_FORM = "fetching_login_form"
    SUBMITTING_LOGIN_FORM = "submitting_login_form"
    BOOTSTRAPPING_CONTEXT = "bootstrapping_context"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def _send(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    try:
        return client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise TransportError(f"{method} {url} failed: {e}") from e


class ContextBootstrapper:
    """Resolve session context from the bootstrap pages, in order."""

    def __init__(self, client: httpx.Client, context: SessionContext, urls=BOOTSTRAP_URLS):
        self.client = client
        self.context = context
        self.urls = tuple(urls)

    def bootstrap_url(self, url: str) -> resolver.ResolvedContext:
        response = _send(self.client, "GET", url, follow_redirects=True)
        if response.status_code != 200:
            raise HttpError(response.status_code, response.reason_phrase)
        resolved = resolver.resolve(extract_context(response.text), url)
        resolver.apply(self.context, resolved)
        return resolved

    def bootstrap(self) -> None:
        """
        Visit every bootstrap page. Callers hold the session writer guard.

        Raises the taxonomy error of the first failing page.
        """
        # Sequential on purpose: later pages depend on cookies set by earlier ones
        for url in self.urls:
            self.bootstrap_url(url)
            logger.debug(f"Bootstrapped context from {url}")

    def run(self, operation: str = "bootstrap") -> None:
        """Bootstrap as an orchestration boundary, raising ``BootstrapError``."""
        try:
            self.bootstrap()
        except Exception as e:
            logger.error(f"{operation} failed: {e!r}", exc_info=True)
            raise BootstrapError(describe(operation, e), operation, error_kind(e)) from None


class AuthenticationFlow:
    """Drive one login attempt from credentials to a bootstrapped context."""

    def __init__(self, client: httpx.Client, context: SessionContext, bootstrapper: ContextBootstrapper | None = None):
        self.client = client
        self.context = context
        self.bootstrapper = bootstrapper or ContextBootstrapper(client, context)
        self.state = AuthState.UNAUTHENTICATED
        self.history: list[AuthState] = [self.state]

    def _enter(self, state: AuthState) -> None:
        logger.debug(f"Login state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fetch_login_form(self, credentials: Credentials) -> dict[str, str]:
        self._enter(AuthState.FETCHING_LOGIN_FORM)
        response = _send(self.client, "GET", LOGIN_URL)
        if response.status_code == 403:
            raise TooManyAttemptsOrBadCredentials(response.status_code, response.reason_phrase)
        if response.status_code != 200:
            raise HttpError(response.status_code, response.reason_phrase)

        form = serialize_login_form(response.text)
        form["userLoginId"] = credentials.email
        form["password"] = credentials.password
        return form

    def submit_login_form(self, form: dict[str, str]) -> None:
        self._enter(AuthState.SUBMITTING_LOGIN_FORM)
        response = _send(self.client, "POST", LOGIN_URL, data=form, follow_redirects=False)
        # A redirect is the only success signal
        if response.status_code != 302:
            message = extract_login_message(response.text) or "Login failed"
            raise LoginRejected(message)

    def bootstrap_context(self) -> None:
        self._enter(AuthState.BOOTSTRAPPING_CONTEXT)
        self.bootstrapper.bootstrap()

    def run(self, credentials: Credentials | None = None) -> SessionContext:
        """
        Log in and bootstrap. Callers hold the session writer guard.

        Without credentials the cookies already in the client are reused.

        Raises:
            LoginError: any step failed; ``kind`` names the root cause
        """
        try:
            if credentials is None:
                logger.info("Reusing existing session cookies")
            elif credentials.uses_cookie:
                self.client.cookies.update(parse_cookie_header(credentials.cookie))
            else:
                form = self.fetch_login_form(credentials)
                self.submit_login_form(form)
            self.bootstrap_context()
        except Exception as e:
            failed_in = self.state
            self._enter(AuthState.FAILED)
            logger.error(f"Login failed while {failed_in.value}: {e!r}", exc_info=True)
            raise LoginError(describe("login", e), "login", error_kind(e)) from None

        self._enter(AuthState.AUTHENTICATED)
        logger.info("Successfully authenticated")
        return self.context
