import logging
import warnings
from typing import Callable

import httpx

from .auth import AuthenticationFlow, AuthState, ContextBootstrapper
from .config import (
    AVATAR_URL_TEMPLATE,
    BASE_URL,
    DEFAULT_AVATAR_SIZE,
    HTTP_TIMEOUT,
    NETFLIX_COOKIE,
    USER_AGENT,
)
from .exceptions import ConsistencyError, StructuralMismatch
from .gateway import ApiRequestGateway
from .models import Profile, RatingRecord, ViewingHistoryItem
from .pagination import PagedResult, PaginatedCollector
from .session import Credentials, SessionContext, SessionGuard, parse_cookie_header
from .utils import session_operation, split_avatar_id

logger = logging.getLogger(__name__)


def avatar_url(avatar_name: str, size: int | None = None) -> str:
    """Image URL for an avatar name such as 'icon26'. No request is made."""
    return AVATAR_URL_TEMPLATE.format(size=size or DEFAULT_AVATAR_SIZE, avatar_id=split_avatar_id(avatar_name))


class NetflixClient:
    """
    Authenticated session against the Netflix web front end.

    Call ``login`` first; every other operation needs the context it
    bootstraps. Operations raise ``OperationError`` (login raises
    ``LoginError``) with the root cause logged.
    """

    def __init__(self, client: httpx.Client | None = None, cookie: str | None = None):
        self.cookies = parse_cookie_header(cookie if cookie is not None else NETFLIX_COOKIE)
        if client is None:
            client = httpx.Client(
                base_url=BASE_URL,
                headers={"User-Agent": USER_AGENT},
                timeout=HTTP_TIMEOUT,
                cookies=self.cookies or None,
            )
        elif self.cookies:
            client.cookies.update(self.cookies)
        self.client = client

        self.context = SessionContext()
        self.guard = SessionGuard()
        self.gateway = ApiRequestGateway(self.client, self.context)
        self.bootstrapper = ContextBootstrapper(self.client, self.context)
        self.auth_state = AuthState.UNAUTHENTICATED
        self.active_profile: str | None = None

    def __enter__(self) -> "NetflixClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self):
        self.client.close()

    # ==================== Session ====================

    def login(self, credentials: Credentials | None = None) -> SessionContext:
        """
        Log in with credentials, or reuse the session cookies when omitted.

        Raises:
            LoginError: login or bootstrap failed
        """
        with self.guard.write():
            flow = AuthenticationFlow(self.client, self.context, self.bootstrapper)
            try:
                return flow.run(credentials)
            finally:
                self.auth_state = flow.state

    @property
    def session_cookie(self) -> str:
        """Cookie header that can be handed back via ``Credentials(cookie=...)``."""
        return "; ".join(f"{name}={value}" for name, value in self.client.cookies.items())

    # ==================== Browsing ====================

    @session_operation()
    def browse(self, genre_id: int, page: int, per_page: int) -> dict:
        """
        Browse titles of a genre, e.g. 34399 for all films.

        Args:
            genre_id: Category id as in https://www.netflix.com/browse/genre/<id>
            page: Zero-based page number
            per_page: Titles per page

        Returns:
            Raw pathEvaluator payload
        """
        pager = {"from": page * per_page, "to": (page + 1) * per_page}
        query = ["genres", genre_id, "su"]
        # pathEvaluator takes a list of graph paths to expand
        body = {
            "paths": [
                [*query, pager, "title", "genres"],
                [*query, pager, "boxarts", "_342x192", "jpg"],
            ]
        }
        return self.gateway.call("browse", body=body)

    # ==================== Profiles ====================

    def _profiles_payload(self) -> dict:
        data = self.gateway.call("profiles")
        if not isinstance(data, dict) or not isinstance(data.get("profiles"), list):
            raise StructuralMismatch("profiles payload has no profile list")
        return data

    def _active_profile(self) -> Profile:
        active = self._profiles_payload().get("active")
        if not isinstance(active, dict):
            raise StructuralMismatch("profiles payload has no active profile")
        profile = Profile.from_json(active)
        if not profile.guid:
            raise StructuralMismatch("active profile has no guid")
        return profile

    @session_operation()
    def get_profiles(self) -> list[Profile]:
        return [Profile.from_json(p) for p in self._profiles_payload()["profiles"]]

    @session_operation()
    def get_active_profile(self) -> Profile:
        return self._active_profile()

    @session_operation(write=True)
    def switch_profile(self, guid: str) -> None:
        """Switch profile and re-bootstrap, since auth tokens are per profile."""
        data = self.gateway.call("switch-profile", params={"switchProfileGuid": guid})
        status = data.get("status") if isinstance(data, dict) else None
        if status != "success":
            raise ConsistencyError(f"Profile switch to {guid} answered status {status!r}", "success", status)
        self.active_profile = guid
        logger.info(f"Switched to profile {guid}, refreshing context")
        self.bootstrapper.bootstrap()

    # ==================== History ====================

    def _collect(
        self,
        endpoint: str,
        items_key: str,
        total_key: str,
        factory: Callable,
        on_page: Callable[[PagedResult], None] | None,
    ) -> list:
        def fetch_page(page: int) -> PagedResult:
            data = self.gateway.call(endpoint, params={"pg": page})
            return PagedResult.from_json(data, items_key, total_key, factory)

        return PaginatedCollector(fetch_page, on_page).collect()

    @session_operation()
    def get_rating_history(self, on_page: Callable[[PagedResult], None] | None = None) -> list[RatingRecord]:
        ratings = self._collect("rating-history", "ratingItems", "totalRatings", RatingRecord.from_json, on_page)
        logger.info(f"Fetched {len(ratings)} ratings")
        return ratings

    @session_operation()
    def get_viewing_history(self, on_page: Callable[[PagedResult], None] | None = None) -> list[ViewingHistoryItem]:
        """Download the whole viewing history, page by page."""
        viewed = self._collect("viewing-history", "viewedItems", "vhSize", ViewingHistoryItem.from_json, on_page)
        logger.info(f"Fetched {len(viewed)} viewing history items")
        return viewed

    @session_operation()
    def hide_viewing_history_item(self, title_id: int, series_all: bool = False) -> dict:
        """Hide one title; with ``series_all`` every episode of its series."""
        return self.gateway.call("hide-viewing-history", body={"movieID": title_id, "seriesAll": series_all})

    @session_operation()
    def hide_all_viewing_history(self) -> dict:
        return self.gateway.call("hide-viewing-history", body={"hideAll": True})

    # ==================== Ratings ====================

    def _set_rating(self, thumb: bool, title_id: int, rating: int) -> None:
        # The two endpoints disagree on the case of the title id parameter
        if thumb:
            endpoint, params = "set-thumb-rating", {"rating": rating, "titleId": title_id}
        else:
            endpoint, params = "set-video-rating", {"rating": rating, "titleid": title_id}

        data = self.gateway.call(endpoint, params=params)
        echoed = data.get("newRating") if isinstance(data, dict) else None
        if echoed != rating:
            raise ConsistencyError(
                f"Rating {rating} for title {title_id} was echoed as {echoed!r}", rating, echoed
            )

    @session_operation()
    def set_star_rating(self, title_id: int, rating: int) -> None:
        self._set_rating(False, title_id, rating)

    @session_operation()
    def set_thumb_rating(self, title_id: int, rating: int) -> None:
        self._set_rating(True, title_id, rating)

    def set_video_rating(self, title_id: int, rating: int) -> None:
        """Deprecated alias of ``set_star_rating``."""
        warnings.warn(
            "set_video_rating is deprecated; use set_star_rating or set_thumb_rating",
            DeprecationWarning,
            stacklevel=2,
        )
        self.set_star_rating(title_id, rating)

    # ==================== Avatars ====================

    def get_avatar_url(self, avatar_name: str, size: int | None = None) -> str:
        return avatar_url(avatar_name, size)

    @session_operation()
    def set_avatar(self, avatar_name: str) -> dict:
        guid = self.active_profile or self._active_profile().guid
        body = {
            "callPath": ["profiles", guid, "edit"],
            "params": [None, None, None, avatar_name, None],
        }
        return self.gateway.call("avatar-edit", params={"method": "call"}, body=body)
