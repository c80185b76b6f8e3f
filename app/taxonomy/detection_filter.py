"""
Detection Filter

Turns the ranked label/object list from the vision collaborator into a
short list of species queries:
1. Drop anatomical, colour, environmental and overly broad terms
2. Sort survivors by confidence
3. Pass 1: descriptions containing a species indicator word
4. Pass 2: the remaining descriptions that are not family/order level
5. Keep at most `max_options`

When every detection is filtered out, the single highest-scoring raw
detection is offered instead so the caller always has something to search.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from app.core.events import EventSink, default_sink
from app.models.enums import DetectionSource, OptionSource
from app.taxonomy.base import Detection, SpeciesOption
from app.taxonomy.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

BINOMIAL_PATTERN = re.compile(r"^[A-Z][a-z]+ [a-z]+$")
DEFAULT_MAX_OPTIONS = 8


def _annotation_detection(entry: Any, key: str, source: DetectionSource) -> Optional[Detection]:
    """Detection for one annotation entry, or None when the entry is malformed."""
    if not isinstance(entry, dict):
        return None
    text = entry.get(key)
    if not isinstance(text, str) or not text.strip():
        return None
    score = entry.get("score")
    if score is None:
        score = 0.0
    elif isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    mid = entry.get("mid")
    return Detection(
        description=text,
        score=float(score),
        source=source,
        mid=mid if isinstance(mid, str) else "",
    )


def _entries(response: Dict[str, Any], key: str) -> List[Any]:
    entries = response.get(key)
    return entries if isinstance(entries, list) else []


def parse_annotations(payload: Dict[str, Any]) -> List[Detection]:
    """
    Convert a raw label/object annotation payload into detections.

    Labels come from `responses[0].labelAnnotations`, objects from
    `responses[0].localizedObjectAnnotations`. An object whose name repeats
    a label (case-insensitive) is skipped. Entries without a text name or
    with a non-numeric score are dropped. Result is sorted by score.
    """
    responses = payload.get("responses")
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        return []
    first = responses[0]

    detections: List[Detection] = []
    for label in _entries(first, "labelAnnotations"):
        detection = _annotation_detection(label, "description", DetectionSource.LABEL)
        if detection is not None:
            detections.append(detection)

    seen = {d.description.lower() for d in detections}
    for obj in _entries(first, "localizedObjectAnnotations"):
        detection = _annotation_detection(obj, "name", DetectionSource.OBJECT)
        if detection is None or detection.description.lower() in seen:
            continue
        seen.add(detection.description.lower())
        detections.append(detection)

    return sorted(detections, key=lambda d: d.score, reverse=True)


def annotation_error(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Error object carried by an annotation payload, if any."""
    if isinstance(payload.get("error"), dict):
        return payload["error"]
    responses = payload.get("responses")
    for response in responses if isinstance(responses, list) else []:
        if isinstance(response, dict) and isinstance(response.get("error"), dict):
            return response["error"]
    return None


class DetectionFilter:
    """Filters raw detections down to species query candidates."""

    def __init__(
        self,
        vocabulary: Vocabulary,
        max_options: int = DEFAULT_MAX_OPTIONS,
        events: Optional[EventSink] = None,
    ):
        self.vocabulary = vocabulary
        self.max_options = max_options
        self.events = events or default_sink(__name__)

    def is_excluded(self, description: str) -> bool:
        text = description.strip().lower()
        return any(text == term or term in text for term in self.vocabulary.exclusion_terms)

    def has_indicator(self, description: str) -> bool:
        text = description.lower()
        return any(term in text for term in self.vocabulary.species_indicators)

    def is_higher_rank(self, description: str) -> bool:
        text = description.lower()
        return any(term in text for term in self.vocabulary.higher_rank_terms)

    def survivors(self, detections: Sequence[Detection]) -> List[Detection]:
        """Non-excluded detections, highest score first (stable)."""
        kept = [d for d in detections if d.description and not self.is_excluded(d.description)]
        return sorted(kept, key=lambda d: d.score, reverse=True)

    def filter(self, detections: Sequence[Detection]) -> List[SpeciesOption]:
        if not detections:
            return []

        valid = self.survivors(detections)
        self.events.emit(
            "detections_filtered",
            total=len(detections), kept=len(valid),
        )

        if not valid:
            top = max(detections, key=lambda d: d.score)
            self.events.emit(
                "detection_fallback", logging.WARNING,
                description=top.description, score=top.score,
            )
            return [SpeciesOption(
                name=top.description,
                score=top.score,
                source=OptionSource.GENERAL_DETECTION,
            )]

        options: List[SpeciesOption] = []
        for detection in valid:
            if self.has_indicator(detection.description):
                options.append(SpeciesOption(
                    name=detection.description,
                    score=detection.score,
                    source=OptionSource.SPECIES_DETECTION,
                ))

        for detection in valid:
            if self.is_higher_rank(detection.description):
                continue
            name = detection.description.lower()
            if any(o.name.lower() == name for o in options):
                continue
            options.append(SpeciesOption(
                name=detection.description,
                score=detection.score,
                source=OptionSource.GENERAL_DETECTION,
            ))

        return options[:self.max_options]

    def best_query(self, detections: Sequence[Detection]) -> Optional[str]:
        """
        Single most promising search query.

        Preference: indicator word, then a binomial-looking description,
        then the best non family/order description, then the top survivor.
        """
        if not detections:
            return None

        valid = self.survivors(detections)
        if not valid:
            return detections[0].description or None

        for detection in valid:
            if self.has_indicator(detection.description):
                return detection.description
        for detection in valid:
            if BINOMIAL_PATTERN.match(detection.description):
                return detection.description
        for detection in valid:
            if not self.is_higher_rank(detection.description):
                return detection.description
        return valid[0].description
