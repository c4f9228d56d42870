"""
Plate Analytics
===============

Bounded Context: Summary statistics over the unique plates of a session.

Responsibilities:
- Immutable summary snapshot (PlateSummary) for display and MQTT status
- Filter / sort helpers over the opaque plate dicts

Only these plate fields are read:
    plate_text, best_confidence, detection_count, is_valid_format,
    first_seen_frame

Design:
- Plates stay plain dicts (forwarded verbatim from the backend)
- Statistics computed with numpy on a confidence vector
- Missing or malformed fields count as 0 / False
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6

PLATE_FILTERS = ("all", "six_char", "valid", "high_confidence")
PLATE_SORTS = ("confidence", "detection_count", "frame_range", "alphabetical")


def _number(plate: Dict[str, Any], key: str) -> float:
    value = plate.get(key)
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _text(plate: Dict[str, Any]) -> str:
    value = plate.get('plate_text')
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class PlateSummary:
    """
    Immutable statistics snapshot for a set of unique plates.

    Design:
    - Frozen dataclass (thread-safe read)
    - Value object (no identity)
    - Can be serialized to JSON/MQTT
    """

    total_plates: int = 0
    valid_plates: int = 0
    six_char_plates: int = 0
    total_detections: int = 0
    mean_confidence: float = 0.0
    max_confidence: float = 0.0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0

    @classmethod
    def from_plates(cls, plates: Iterable[Dict[str, Any]]) -> "PlateSummary":
        plates = [p for p in plates if isinstance(p, dict)]
        if not plates:
            return cls()

        confidences = np.array([_number(p, 'best_confidence') for p in plates], dtype=float)
        detections = np.array([_number(p, 'detection_count') for p in plates], dtype=float)

        high = confidences >= HIGH_CONFIDENCE
        medium = (confidences >= MEDIUM_CONFIDENCE) & ~high

        return cls(
            total_plates=len(plates),
            valid_plates=sum(1 for p in plates if p.get('is_valid_format') is True),
            six_char_plates=sum(1 for p in plates if _is_six_char(p)),
            total_detections=int(detections.sum()),
            mean_confidence=float(confidences.mean()),
            max_confidence=float(confidences.max()),
            high_confidence=int(high.sum()),
            medium_confidence=int(medium.sum()),
            low_confidence=int((~high & ~medium).sum()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_plates': self.total_plates,
            'valid_plates': self.valid_plates,
            'six_char_plates': self.six_char_plates,
            'total_detections': self.total_detections,
            'mean_confidence': round(self.mean_confidence, 4),
            'max_confidence': round(self.max_confidence, 4),
            'confidence_breakdown': {
                'high': self.high_confidence,
                'medium': self.medium_confidence,
                'low': self.low_confidence,
            },
        }

    def __str__(self) -> str:
        """Human-readable representation."""
        return (
            f"{self.total_plates} plates ({self.valid_plates} valid), "
            f"{self.total_detections} detections, "
            f"best={self.max_confidence:.2f} mean={self.mean_confidence:.2f}"
        )


def _is_six_char(plate: Dict[str, Any]) -> bool:
    return len([c for c in _text(plate) if c.isalnum()]) == 6


def filter_plates(
    plates: Sequence[Dict[str, Any]],
    kind: str = "all",
    search: str = "",
) -> List[Dict[str, Any]]:
    """
    Select plates by kind and a case-insensitive plate_text substring.

    Args:
        plates: Unique plate dicts
        kind: One of PLATE_FILTERS
        search: Substring of plate_text ("" matches everything)

    Raises:
        ValueError: If kind is unknown
    """
    if kind not in PLATE_FILTERS:
        raise ValueError(f"Unknown filter '{kind}'. Valid: {', '.join(PLATE_FILTERS)}")

    selected = [p for p in plates if isinstance(p, dict)]
    if search:
        needle = search.lower()
        selected = [p for p in selected if needle in _text(p).lower()]

    if kind == "six_char":
        selected = [p for p in selected if _is_six_char(p)]
    elif kind == "valid":
        selected = [p for p in selected if p.get('is_valid_format') is True]
    elif kind == "high_confidence":
        selected = [p for p in selected if _number(p, 'best_confidence') >= HIGH_CONFIDENCE]

    return selected


def sort_plates(
    plates: Sequence[Dict[str, Any]],
    by: str = "confidence",
    descending: bool = True,
) -> List[Dict[str, Any]]:
    """
    Stable sort of plate dicts.

    Raises:
        ValueError: If `by` is unknown
    """
    if by == "confidence":
        key = lambda p: _number(p, 'best_confidence')
    elif by == "detection_count":
        key = lambda p: _number(p, 'detection_count')
    elif by == "frame_range":
        key = lambda p: _number(p, 'first_seen_frame')
    elif by == "alphabetical":
        key = lambda p: _text(p).lower()
    else:
        raise ValueError(f"Unknown sort '{by}'. Valid: {', '.join(PLATE_SORTS)}")

    return sorted(plates, key=key, reverse=descending)
