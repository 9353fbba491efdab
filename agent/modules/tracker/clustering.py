"""Place clustering — reduce raw samples to representative places.

All functions are pure and work on any objects exposing ``latitude``,
``longitude`` and ``label`` (ORM rows or plain dataclasses). Nothing here is
cached; callers recompute from the sample list on every request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

DEFAULT_TOLERANCE_DEG = 0.001  # ~100 m, compared per axis


class SampleLike(Protocol):
    latitude: float
    longitude: float
    label: str | None


@dataclass
class PlaceCluster:
    """A group of samples treated as one place."""

    label: str
    latitude: float
    longitude: float
    sample_count: int
    display_label: str | None = None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "display_label": self.display_label or self.label,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "sample_count": self.sample_count,
        }


def normalize_label(label: str | None) -> str | None:
    """Trim and lowercase a label; blank labels become None."""
    if label is None:
        return None
    key = label.strip().lower()
    return key or None


def labeled_only(samples: Iterable[SampleLike]) -> list[SampleLike]:
    """Keep samples whose label survives normalization, preserving order."""
    return [s for s in samples if normalize_label(s.label)]


def cluster_by_label(samples: Iterable[SampleLike]) -> dict[str, PlaceCluster]:
    """Group labeled samples by normalized label.

    Returns ``{label: PlaceCluster}`` in first-seen order. The centroid is the
    plain mean of the member coordinates.
    """
    sums: dict[str, list[float]] = {}
    counts: dict[str, int] = {}
    display: dict[str, str] = {}

    for sample in samples:
        key = normalize_label(sample.label)
        if key is None:
            continue
        if key not in sums:
            sums[key] = [0.0, 0.0]
            counts[key] = 0
            display[key] = sample.label.strip()
        sums[key][0] += sample.latitude
        sums[key][1] += sample.longitude
        counts[key] += 1

    return {
        key: PlaceCluster(
            label=key,
            latitude=sums[key][0] / counts[key],
            longitude=sums[key][1] / counts[key],
            sample_count=counts[key],
            display_label=display[key],
        )
        for key in sums
    }


def cluster_by_proximity(
    samples: Iterable[SampleLike],
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
) -> list[PlaceCluster]:
    """Greedy grid-tolerance clustering, ignoring labels.

    A sample joins the first existing cluster whose centroid is within
    ``tolerance_deg`` on both axes, otherwise it seeds a new cluster.
    Centroids are kept as a true running mean, so they move as members are
    added. Clusters get synthetic labels (``place-1``, ``place-2``, ...) in
    discovery order and are returned most-visited first; ties keep discovery
    order.
    """
    clusters: list[PlaceCluster] = []

    for sample in samples:
        for cluster in clusters:
            if (
                abs(sample.latitude - cluster.latitude) <= tolerance_deg
                and abs(sample.longitude - cluster.longitude) <= tolerance_deg
            ):
                n = cluster.sample_count + 1
                cluster.latitude += (sample.latitude - cluster.latitude) / n
                cluster.longitude += (sample.longitude - cluster.longitude) / n
                cluster.sample_count = n
                break
        else:
            clusters.append(
                PlaceCluster(
                    label=f"place-{len(clusters) + 1}",
                    latitude=sample.latitude,
                    longitude=sample.longitude,
                    sample_count=1,
                )
            )

    return sorted(clusters, key=lambda c: c.sample_count, reverse=True)


def build_transition_model(
    samples: Iterable[SampleLike],
) -> dict[str, dict[str, int]]:
    """Count label-to-label moves between consecutive labeled samples.

    ``samples`` must be in ascending chronological order. Unlabeled samples
    are dropped first, so labeled samples separated only by unlabeled ones
    still count as adjacent. Inner dicts keep first-seen order.
    """
    keys = [normalize_label(s.label) for s in samples]
    keys = [k for k in keys if k is not None]

    transitions: dict[str, dict[str, int]] = {}
    for current, following in zip(keys, keys[1:]):
        outgoing = transitions.setdefault(current, {})
        outgoing[following] = outgoing.get(following, 0) + 1
    return transitions
