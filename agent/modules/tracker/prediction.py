"""Next-location prediction engine.

Pure and synchronous: takes a user's samples (ascending by capture time) and
the "now" context, and returns one best-supported estimate. Persistence and
auth live in the tool layer.

Two cascades of tiers are tried in order; the first tier that produces an
estimate wins.

Label path (at least two labeled samples):
    transition       - most frequent move out of the current label (cap 0.95)
    time_of_day      - plurality label around the next hour, same weekday (cap 0.85)
    global_frequency - plurality label over all labeled samples (cap 0.6)

Coordinate path (fewer than two labeled samples):
    hour_pattern     - busiest (day, hour) slot in the next three hours (cap 0.95)
    most_visited     - busiest ~11 m grid cell overall (cap 0.7)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from modules.tracker.clustering import (
    PlaceCluster,
    SampleLike,
    build_transition_model,
    cluster_by_label,
    labeled_only,
    normalize_label,
)
from modules.tracker.errors import InsufficientDataError

MIN_SAMPLES = 3
MAX_CONFIDENCE = 0.95

TRANSITION_CAP = 0.95
TIME_OF_DAY_CAP = 0.85
GLOBAL_FREQUENCY_CAP = 0.6
HOUR_PATTERN_CAP = 0.95
MOST_VISITED_CAP = 0.7

# Hours after "now" scanned by the coordinate path
LOOKAHEAD_HOURS = 3
# Decimal places for the most-visited grid (~11 m)
GRID_PRECISION = 4


class TimedSample(SampleLike, Protocol):
    day: int
    hour: int


@dataclass
class PredictionContext:
    """Everything a tier may look at, derived once per request."""

    samples: Sequence[TimedSample]
    labeled: list[TimedSample]
    hour: int
    day: int
    current_label: str | None
    transitions: dict[str, dict[str, int]]
    places: dict[str, PlaceCluster]


@dataclass
class TierEstimate:
    tier: str
    label: str
    confidence: float
    based_on: int
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class TransitionOption:
    label: str
    count: int
    latitude: float | None = None
    longitude: float | None = None

    def to_dict(self) -> dict:
        coords = None
        if self.latitude is not None and self.longitude is not None:
            coords = {"lat": self.latitude, "lng": self.longitude}
        return {"label": self.label, "count": self.count, "coords": coords}


@dataclass
class PredictionResult:
    latitude: float
    longitude: float
    confidence: float
    label: str
    based_on_data_points: int
    tier: str
    total_data_points: int
    labeled_data_points: int
    available_labels: list[str] = field(default_factory=list)
    transitions: list[TransitionOption] = field(default_factory=list)

    def to_response(self) -> dict:
        """Wire shape returned to clients."""
        return {
            "prediction": {
                "latitude": self.latitude,
                "longitude": self.longitude,
                "confidence": self.confidence,
                "label": self.label,
                "basedOnDataPoints": self.based_on_data_points,
            },
            "totalDataPoints": self.total_data_points,
            "labeledDataPoints": self.labeled_data_points,
            "availableLabels": list(self.available_labels),
            "transitions": [t.to_dict() for t in self.transitions],
        }


Tier = Callable[[PredictionContext], TierEstimate | None]


def _clamp(value: float, cap: float) -> float:
    return max(0.0, min(value, cap, MAX_CONFIDENCE))


def _plurality(keys: list[str]) -> tuple[str, int] | None:
    """Most common key; ties go to the key seen first."""
    if not keys:
        return None
    return Counter(keys).most_common(1)[0]


# ---------------------------------------------------------------------------
# Label tiers
# ---------------------------------------------------------------------------


def transition_tier(ctx: PredictionContext) -> TierEstimate | None:
    if ctx.current_label is None:
        return None
    outgoing = ctx.transitions.get(ctx.current_label)
    if not outgoing:
        return None

    total = sum(outgoing.values())
    best_label, best_count = max(outgoing.items(), key=lambda item: item[1])
    return TierEstimate(
        tier="transition",
        label=best_label,
        confidence=_clamp(best_count / total, TRANSITION_CAP),
        based_on=total,
    )


def time_of_day_tier(ctx: PredictionContext) -> TierEstimate | None:
    target_hour = (ctx.hour + 1) % 24
    # Linear window: at 23:00 the target is 0, so only hours 0 and 1 match
    matching = [
        normalize_label(s.label)
        for s in ctx.labeled
        if s.day == ctx.day and abs(s.hour - target_hour) <= 1
    ]
    winner = _plurality(matching)
    if winner is None:
        return None

    label, count = winner
    return TierEstimate(
        tier="time_of_day",
        label=label,
        confidence=_clamp(count / len(matching), TIME_OF_DAY_CAP),
        based_on=len(matching),
    )


def global_frequency_tier(ctx: PredictionContext) -> TierEstimate | None:
    winner = _plurality([normalize_label(s.label) for s in ctx.labeled])
    if winner is None:
        return None

    label, count = winner
    return TierEstimate(
        tier="global_frequency",
        label=label,
        confidence=_clamp(count / len(ctx.labeled), GLOBAL_FREQUENCY_CAP),
        based_on=len(ctx.labeled),
    )


LABEL_TIERS: tuple[Tier, ...] = (
    transition_tier,
    time_of_day_tier,
    global_frequency_tier,
)


# ---------------------------------------------------------------------------
# Coordinate tiers
# ---------------------------------------------------------------------------


def hour_pattern_tier(ctx: PredictionContext) -> TierEstimate | None:
    slots: dict[tuple[int, int], list[TimedSample]] = {}
    for s in ctx.samples:
        slots.setdefault((s.day, s.hour), []).append(s)

    best: tuple[int, list[TimedSample]] | None = None
    for offset in range(1, LOOKAHEAD_HOURS + 1):
        raw_hour = ctx.hour + offset
        day = (ctx.day + raw_hour // 24) % 7
        hour = raw_hour % 24
        group = slots.get((day, hour))
        if group and (best is None or len(group) > len(best[1])):
            best = (hour, group)

    if best is None:
        return None

    hour, group = best
    count = len(group)
    return TierEstimate(
        tier="hour_pattern",
        label=f"Hour {hour}:00",
        confidence=_clamp(count / len(ctx.samples) * 5 + 0.3, HOUR_PATTERN_CAP),
        based_on=count,
        latitude=sum(s.latitude for s in group) / count,
        longitude=sum(s.longitude for s in group) / count,
    )


def most_visited_tier(ctx: PredictionContext) -> TierEstimate | None:
    cells: dict[tuple[float, float], list[float]] = {}
    for s in ctx.samples:
        key = (round(s.latitude, GRID_PRECISION), round(s.longitude, GRID_PRECISION))
        cell = cells.setdefault(key, [0.0, 0.0, 0])
        cell[0] += s.latitude
        cell[1] += s.longitude
        cell[2] += 1

    best = None
    for cell in cells.values():
        if best is None or cell[2] > best[2]:
            best = cell
    if best is None:
        return None

    lat_sum, lng_sum, count = best
    return TierEstimate(
        tier="most_visited",
        label="Most visited location",
        confidence=_clamp(count / len(ctx.samples) * 2, MOST_VISITED_CAP),
        based_on=count,
        latitude=lat_sum / count,
        longitude=lng_sum / count,
    )


COORDINATE_TIERS: tuple[Tier, ...] = (
    hour_pattern_tier,
    most_visited_tier,
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def predict_next_location(
    samples: Sequence[TimedSample],
    hour: int,
    day: int,
    current_label: str | None = None,
    min_samples: int = MIN_SAMPLES,
) -> PredictionResult:
    """Predict where the user goes next.

    Args:
        samples: The user's samples in ascending chronological order.
        hour: Current local hour, 0-23.
        day: Current local weekday, 0-6 with 0 = Sunday.
        current_label: Place the user says they are at now, if any.
        min_samples: Fewer samples than this raises InsufficientDataError.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be between 0 and 23, got {hour}")
    if not 0 <= day <= 6:
        raise ValueError(f"day must be between 0 and 6, got {day}")

    samples = list(samples)
    if len(samples) < min_samples:
        raise InsufficientDataError(len(samples), min_samples)

    labeled = labeled_only(samples)
    ctx = PredictionContext(
        samples=samples,
        labeled=labeled,
        hour=hour,
        day=day,
        current_label=normalize_label(current_label),
        transitions=build_transition_model(labeled),
        places=cluster_by_label(labeled),
    )

    label_path = len(labeled) >= 2
    tiers = LABEL_TIERS if label_path else COORDINATE_TIERS

    for tier in tiers:
        estimate = tier(ctx)
        if estimate is not None:
            break
    else:
        raise InsufficientDataError(len(samples), min_samples)

    if label_path:
        place = ctx.places[estimate.label]
        estimate.latitude = place.latitude
        estimate.longitude = place.longitude

    result = PredictionResult(
        latitude=estimate.latitude,
        longitude=estimate.longitude,
        confidence=estimate.confidence,
        label=estimate.label,
        based_on_data_points=estimate.based_on,
        tier=estimate.tier,
        total_data_points=len(samples),
        labeled_data_points=len(labeled),
    )

    if label_path:
        result.available_labels = list(ctx.places)
        if estimate.tier == "transition":
            result.transitions = _transition_options(ctx)

    return result


def _transition_options(ctx: PredictionContext) -> list[TransitionOption]:
    options = []
    for label, count in ctx.transitions.get(ctx.current_label, {}).items():
        place = ctx.places.get(label)
        options.append(
            TransitionOption(
                label=label,
                count=count,
                latitude=place.latitude if place else None,
                longitude=place.longitude if place else None,
            )
        )
    return options
