import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional, Sequence, Union

from ratings.models import MAX_FEEDBACK_LENGTH, ON_TIME_NO, ON_TIME_YES, Review, Season, Workshop

QUALITY_WEIGHT = 0.8
COMMUNICATION_WEIGHT = 0.2

RATING_TYPES = ("overall", "quality", "communication", "delays")
SEASONAL_TYPE_ALIASES = {"timing": "delays"}

_ON_TIME_INPUTS = {
    "yes": ON_TIME_YES,
    "да": ON_TIME_YES,
    "true": ON_TIME_YES,
    "no": ON_TIME_NO,
    "нет": ON_TIME_NO,
    "false": ON_TIME_NO,
}


class InvalidReviewError(ValueError):
    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


@dataclass(frozen=True)
class WorkshopStats:
    avg_quality: float = 0.0
    avg_communication: float = 0.0
    total_reviews: int = 0
    on_time_count: int = 0
    on_time_percentage: float = 0.0

    @property
    def delayed_count(self) -> int:
        return self.total_reviews - self.on_time_count

    def to_dict(self) -> dict:
        return {
            "avg_quality": round(self.avg_quality, 2),
            "avg_communication": round(self.avg_communication, 2),
            "total_reviews": self.total_reviews,
            "on_time_count": self.on_time_count,
            "on_time_percentage": self.on_time_percentage,
        }


@dataclass(frozen=True)
class OverallRatingEntry:
    stats: WorkshopStats
    quality_score: float
    communication_score: float
    base_rating: float
    log_factor: float
    overall_rating: float

    def to_dict(self) -> dict:
        payload = self.stats.to_dict()
        payload.update(
            {
                "quality_score": round(self.quality_score, 2),
                "communication_score": round(self.communication_score, 2),
                "base_rating": round(self.base_rating, 4),
                "log_factor": round(self.log_factor, 4),
                "overall_rating": round(self.overall_rating, 4),
            }
        )
        return payload


def compute_workshop_stats(reviews: Sequence[Review]) -> WorkshopStats:
    total = len(reviews)
    if total == 0:
        return WorkshopStats()
    on_time_count = sum(1 for r in reviews if r.on_time == ON_TIME_YES)
    return WorkshopStats(
        avg_quality=sum(r.quality_rating for r in reviews) / total,
        avg_communication=sum(r.communication_rating for r in reviews) / total,
        total_reviews=total,
        on_time_count=on_time_count,
        on_time_percentage=round(on_time_count / total * 100, 1),
    )


def compute_overall_rating(stats: WorkshopStats) -> OverallRatingEntry:
    """Composite score: weighted rating, scaled by on-time share and log review volume.

    ln(total + 1) is zero for a workshop without reviews, so such a workshop
    always scores 0.
    """
    quality_score = stats.avg_quality
    communication_score = stats.avg_communication
    base_rating = quality_score * QUALITY_WEIGHT + communication_score * COMMUNICATION_WEIGHT
    log_factor = math.log(stats.total_reviews + 1)
    overall_rating = base_rating * (stats.on_time_percentage / 100) * log_factor
    return OverallRatingEntry(
        stats=stats,
        quality_score=quality_score,
        communication_score=communication_score,
        base_rating=base_rating,
        log_factor=log_factor,
        overall_rating=overall_rating,
    )


def filter_by_season(reviews: Iterable[Review], season: Season) -> list[Review]:
    return [r for r in reviews if r.created_at is not None and season.contains(r.created_at)]


@dataclass(frozen=True)
class WorkshopRating:
    workshop: Workshop
    stats: WorkshopStats

    rating_type = "plain"

    def sort_value(self, rating_type: str) -> float:
        if rating_type == "quality":
            return self.stats.avg_quality
        if rating_type == "communication":
            return self.stats.avg_communication
        if rating_type == "delays":
            return self.stats.on_time_percentage
        return 0.0

    def to_dict(self) -> dict:
        payload = self.workshop.to_dict()
        payload.update(self.stats.to_dict())
        return payload


@dataclass(frozen=True)
class OverallWorkshopRating:
    workshop: Workshop
    entry: OverallRatingEntry

    rating_type = "overall"

    @property
    def stats(self) -> WorkshopStats:
        return self.entry.stats

    def sort_value(self, rating_type: str) -> float:
        return self.entry.overall_rating

    def to_dict(self) -> dict:
        payload = self.workshop.to_dict()
        payload.update(self.entry.to_dict())
        return payload


RatingRow = Union[WorkshopRating, OverallWorkshopRating]


def resolve_rating_type(raw: Optional[str], seasonal: bool = False) -> Optional[str]:
    value = (raw or "overall").strip().lower()
    if seasonal:
        value = SEASONAL_TYPE_ALIASES.get(value, value)
    return value if value in RATING_TYPES else None


def rank_workshops(rows: Sequence[RatingRow], rating_type: str) -> list[RatingRow]:
    # sorted() is stable: equal scores keep storage order (workshop name).
    return sorted(rows, key=lambda row: row.sort_value(rating_type), reverse=True)


def build_workshop_rows(
    workshops: Sequence[Workshop],
    reviews: Iterable[Review],
    overall: bool = False,
) -> list[RatingRow]:
    by_workshop: dict[str, list[Review]] = {}
    for review in reviews:
        by_workshop.setdefault(review.workshop, []).append(review)

    rows: list[RatingRow] = []
    for workshop in workshops:
        stats = compute_workshop_stats(by_workshop.get(workshop.name, []))
        if overall:
            rows.append(OverallWorkshopRating(workshop, compute_overall_rating(stats)))
        else:
            rows.append(WorkshopRating(workshop, stats))
    return rows


def build_ratings(
    workshops: Sequence[Workshop],
    reviews: Iterable[Review],
    rating_type: str,
    season: Optional[Season] = None,
) -> list[RatingRow]:
    if season is not None:
        reviews = filter_by_season(reviews, season)
    rows = build_workshop_rows(workshops, reviews, overall=rating_type == "overall")
    return rank_workshops(rows, rating_type)


def normalize_on_time(value) -> str:
    if isinstance(value, bool):
        return ON_TIME_YES if value else ON_TIME_NO
    if isinstance(value, str):
        normalized = _ON_TIME_INPUTS.get(value.strip().lower())
        if normalized:
            return normalized
    raise InvalidReviewError("invalid_on_time", "onTime must be Да/Нет")


def parse_rating(value, field_name: str = "rating") -> int:
    if isinstance(value, bool):
        raise InvalidReviewError(f"invalid_{field_name}")
    if isinstance(value, int):
        rating = value
    elif isinstance(value, str) and value.strip().isdigit():
        rating = int(value.strip())
    else:
        raise InvalidReviewError(f"invalid_{field_name}")
    if rating < 1 or rating > 5:
        raise InvalidReviewError(f"invalid_{field_name}")
    return rating


def clean_text_feedback(value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidReviewError("invalid_text_feedback")
    text = value.strip()
    if len(text) > MAX_FEEDBACK_LENGTH:
        raise InvalidReviewError("text_too_long", f"max {MAX_FEEDBACK_LENGTH} characters")
    return text


def voted_today(last_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if last_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return last_at.astimezone(timezone.utc).date() >= now.astimezone(timezone.utc).date()


def parse_date(raw: str) -> date:
    raw = raw.strip()
    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"bad date: {raw!r}")


def season_bounds(start: date, end: Optional[date]) -> tuple[datetime, Optional[datetime]]:
    start_at = datetime.combine(start, time.min, tzinfo=timezone.utc)
    end_at = datetime.combine(end, time.max, tzinfo=timezone.utc) if end else None
    return start_at, end_at


def seasons_overlap(
    a_start: datetime,
    a_end: Optional[datetime],
    b_start: datetime,
    b_end: Optional[datetime],
) -> bool:
    a_ends_before_b = a_end is not None and a_end < b_start
    b_ends_before_a = b_end is not None and b_end < a_start
    return not (a_ends_before_b or b_ends_before_a)
