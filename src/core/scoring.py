"""
Correctness scoring between user-entered and registry provider data

Features:
- Per-field 0 / 0.5 / 1 scoring ladder (exact, substring, character overlap)
- Phone-aware normalization for the phone field
- Fixed weight table rolled up into one 0-100 correctness score
- Per-field report with match / partial / mismatch status
"""

import logging
import math
from typing import Any, Dict, Mapping, Tuple

from src.core.models import FieldScore
from src.core.normalizer import normalize_address, normalize_phone

logger = logging.getLogger(__name__)


class FieldScorer:
    """Score a single field comparison"""

    # Overlap ratio above which two strings count as a partial match
    OVERLAP_THRESHOLD = 0.8

    @classmethod
    def character_overlap(cls, a: str, b: str) -> float:
        """
        Bag-of-characters similarity (0-1)

        Counts the characters of the shorter string that occur anywhere in
        the longer one, divided by the longer length. Equal-length strings
        are ordered by value so the result does not depend on argument order.
        """
        longer, shorter = sorted((a, b), key=lambda s: (len(s), s), reverse=True)
        if not longer:
            return 1.0

        matched = sum(1 for ch in shorter if ch in longer)
        return matched / len(longer)

    @classmethod
    def score_field(cls, user_value: Any, registry_value: Any, is_phone: bool = False) -> float:
        """Return 1 for a match, 0.5 for a partial match, 0 otherwise"""
        normalize = normalize_phone if is_phone else normalize_address
        user_norm = normalize(user_value)
        registry_norm = normalize(registry_value)

        # Missing data never confirms a match
        if not user_norm or not registry_norm:
            return 0

        if user_norm == registry_norm:
            return 1

        if user_norm in registry_norm or registry_norm in user_norm:
            return 0.5

        if cls.character_overlap(user_norm, registry_norm) > cls.OVERLAP_THRESHOLD:
            return 0.5

        return 0


class CorrectnessScorer:
    """Weighted roll-up of field scores into one correctness percentage"""

    FIELD_WEIGHTS = {
        "name": 2,
        "phone": 1.5,
        "address_line1": 1.5,
        "city": 1,
        "state": 1,
        "postal_code": 1,
        "specialty": 1,
    }

    PHONE_FIELDS = {"phone"}

    @staticmethod
    def _field_value(record: Any, field_name: str) -> str:
        if record is None:
            return ""
        if isinstance(record, Mapping):
            value = record.get(field_name)
        else:
            value = getattr(record, field_name, None)
        return str(value) if value else ""

    @classmethod
    def score(cls, user_data: Any, registry_data: Any) -> Tuple[int, Dict[str, FieldScore]]:
        """
        Score user data against a registry record

        Returns:
            Tuple of (overall 0-100, field name -> FieldScore)
        """
        field_scores = {}
        total_weight = 0.0
        weighted_score = 0.0

        for field_name, weight in cls.FIELD_WEIGHTS.items():
            user_value = cls._field_value(user_data, field_name)
            registry_value = cls._field_value(registry_data, field_name)
            score = FieldScorer.score_field(
                user_value, registry_value, is_phone=field_name in cls.PHONE_FIELDS
            )

            field_scores[field_name] = FieldScore(
                user_value=user_value,
                registry_value=registry_value,
                score=score,
            )
            total_weight += weight
            weighted_score += score * weight

        # Half-up rounding, so 12.5 -> 13
        overall = int(math.floor(weighted_score / total_weight * 100 + 0.5))

        logger.debug(f"Correctness score {overall} over {len(field_scores)} fields")
        return overall, field_scores
