import logging
from dataclasses import dataclass, field

import httpx

from .config import (
    MANAGE_PROFILES_URL,
    PATH_EVALUATOR_ENDPOINT,
    PROFILES_ENDPOINT,
    RATING_HISTORY_ENDPOINT,
    SET_THUMB_RATING_ENDPOINT,
    SET_VIDEO_RATING_ENDPOINT,
    SWITCH_PROFILE_ENDPOINT,
    VIEWING_ACTIVITY_CONTROL_ENDPOINT,
    VIEWING_ACTIVITY_ENDPOINT,
    YOUR_ACCOUNT_URL,
)
from .exceptions import ApplicationError, HttpError, StructuralMismatch, TransportError
from .session import SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    name: str
    path: str
    method: str = "GET"
    # Whether endpoint identifiers from bootstrap state are appended
    identified: bool = True
    # Bootstrap page whose auth token governs this endpoint
    auth_scope: str | None = None
    # Where the token goes: "query" or "body"
    auth_in: str = "query"


ENDPOINTS: dict[str, Endpoint] = {
    endpoint.name: endpoint
    for endpoint in (
        Endpoint("browse", PATH_EVALUATOR_ENDPOINT, "POST", identified=False),
        Endpoint("profiles", PROFILES_ENDPOINT),
        Endpoint("switch-profile", SWITCH_PROFILE_ENDPOINT),
        Endpoint("rating-history", RATING_HISTORY_ENDPOINT),
        Endpoint("viewing-history", VIEWING_ACTIVITY_ENDPOINT),
        Endpoint("set-thumb-rating", SET_THUMB_RATING_ENDPOINT, auth_scope=YOUR_ACCOUNT_URL),
        Endpoint("set-video-rating", SET_VIDEO_RATING_ENDPOINT, auth_scope=YOUR_ACCOUNT_URL),
        Endpoint(
            "avatar-edit", PATH_EVALUATOR_ENDPOINT, "POST",
            identified=False, auth_scope=MANAGE_PROFILES_URL, auth_in="body",
        ),
        Endpoint(
            "hide-viewing-history", VIEWING_ACTIVITY_CONTROL_ENDPOINT, "POST",
            auth_scope=YOUR_ACCOUNT_URL, auth_in="body",
        ),
    )
}


@dataclass
class ApiRequest:
    endpoint: str
    method: str
    path: str
    params: dict = field(default_factory=dict)
    body: dict | None = None
    headers: dict = field(default_factory=lambda: {"Accept": "application/json"})


class ApiRequestGateway:
    """Builds and executes authenticated JSON API requests for one session."""

    def __init__(self, client: httpx.Client, context: SessionContext):
        self.client = client
        self.context = context

    def _resolve_path(self, endpoint: Endpoint) -> str:
        if not endpoint.identified:
            return endpoint.path
        identifiers = self.context.endpoint_identifiers or {}
        # Only some bootstrap shapes publish identifiers; absence is normal
        suffix = identifiers.get(endpoint.name) or identifiers.get(endpoint.path)
        return f"{endpoint.path}/{suffix}" if suffix else endpoint.path

    def build_request(
        self,
        endpoint_name: str,
        params: dict | None = None,
        body: dict | None = None,
        method: str | None = None,
    ) -> ApiRequest:
        endpoint = ENDPOINTS.get(endpoint_name)
        if endpoint is None:
            raise KeyError(f"Unknown endpoint: {endpoint_name}")

        request = ApiRequest(
            endpoint=endpoint.name,
            method=(method or endpoint.method).upper(),
            path=self._resolve_path(endpoint),
            params=dict(params or {}),
            body=dict(body) if body is not None else None,
        )

        if endpoint.auth_scope is not None:
            token = self.context.auth_token(endpoint.auth_scope)
            if token is None:
                logger.warning(f"No auth token from {endpoint.auth_scope} for {endpoint.name}")
            elif endpoint.auth_in == "body":
                request.body = {**(request.body or {}), "authURL": token}
            else:
                request.params["authURL"] = token

        return request

    def execute(self, request: ApiRequest):
        """
        Send ``request`` and classify the outcome.

        Returns:
            Parsed JSON body of a 200 response

        Raises:
            TransportError: no response was received
            ApplicationError: HTTP 500 with an ``errorCode`` in the body
            HttpError: any other non-200 status
            StructuralMismatch: not bootstrapped yet, or a 200 without JSON
        """
        if not self.context.is_bootstrapped:
            raise StructuralMismatch("Session context is not bootstrapped; no API root known")

        url = self.context.api_root.rstrip("/") + request.path
        logger.debug(f"{request.method} {request.endpoint} -> {url} params={sorted(request.params)}")

        try:
            response = self.client.request(
                request.method,
                url,
                params=request.params or None,
                json=request.body,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{request.method} {url} failed: {e}") from e

        if response.status_code == 500:
            code = _error_code(response)
            if code:
                raise ApplicationError(code)

        if response.status_code != 200:
            raise HttpError(response.status_code, response.reason_phrase)

        try:
            return response.json()
        except ValueError as e:
            raise StructuralMismatch(f"{request.endpoint} returned a non-JSON body") from e

    def call(self, endpoint_name: str, **options):
        return self.execute(self.build_request(endpoint_name, **options))


def _error_code(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("errorCode"):
        return str(payload["errorCode"])
    return None
