"""Read-only projections of API payloads."""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Profile:
    guid: str
    display_name: str
    avatar_name: str | None
    is_active: bool
    can_edit: bool
    is_kids: bool = False
    is_account_owner: bool = False
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_json(cls, data: dict) -> "Profile":
        return cls(
            guid=data.get("guid", ""),
            display_name=data.get("profileName") or data.get("firstName") or data.get("rawFirstName") or "",
            avatar_name=data.get("avatarName"),
            is_active=bool(data.get("isActive")),
            can_edit=bool(data.get("canEdit")),
            is_kids=bool(data.get("isKids") or data.get("experience") == "jfk"),
            is_account_owner=bool(data.get("isAccountOwner")),
            raw=data,
        )


@dataclass(frozen=True)
class RatingRecord:
    title_id: int | None
    title: str
    rating_type: str
    your_rating: int | float | None
    date: str | None = None
    timestamp: int | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_thumb(self) -> bool:
        return self.rating_type == "thumb"

    @classmethod
    def from_json(cls, data: dict) -> "RatingRecord":
        rating_type = data.get("ratingType") or "star"
        rating = data.get("yourRating")
        if rating_type == "thumb" and data.get("intRating") is not None:
            rating = data["intRating"]
        return cls(
            title_id=data.get("movieID"),
            title=data.get("title", ""),
            rating_type=rating_type,
            your_rating=rating,
            date=data.get("date"),
            timestamp=data.get("timestamp"),
            raw=data,
        )


@dataclass(frozen=True)
class ViewingHistoryItem:
    title_id: int | None
    title: str
    series_title: str | None = None
    date: int | None = None
    duration: int | None = None
    bookmark: int | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_episode(self) -> bool:
        return self.series_title is not None

    @classmethod
    def from_json(cls, data: dict) -> "ViewingHistoryItem":
        return cls(
            title_id=data.get("movieID"),
            title=data.get("title") or data.get("videoTitle") or "",
            series_title=data.get("seriesTitle"),
            date=data.get("date"),
            duration=data.get("duration"),
            bookmark=data.get("bookmark"),
            raw=data,
        )
