"""
House-number pattern inference

Infers a street's numbering step from the observed house numbers and
synthesizes estimated buildings for the gaps. The step is the most common
difference between consecutive numbers (ties go to the smaller difference);
when both odd and even numbers are present each side of the street is
treated as its own sequence with step 2.

Synthesized buildings are positioned by linear offset from the numerically
nearest observed building. They are estimates, never geocoded.
"""

import math
from collections import Counter
from typing import Dict, List, Optional, Tuple

from loguru import logger

from .addresses import normalize_street, slugify
from .config import PipelineConfig, get_config
from .geometry import is_valid_coordinate
from .models import Building, BuildingSource


def infer_step(numbers: List[int]) -> Optional[int]:
    """Mode of the consecutive differences of the unique sorted numbers"""
    observed = sorted(set(numbers))
    if len(observed) < 2:
        return None
    diffs = Counter(b - a for a, b in zip(observed, observed[1:]))
    best = max(diffs.values())
    return min(d for d, count in diffs.items() if count == best)


def is_dual_sequence(numbers: List[int]) -> bool:
    """Both odd and even numbers present (one per side of the street)"""
    return any(n % 2 for n in numbers) and any(n % 2 == 0 for n in numbers)


class PatternInferenceEngine:
    """Fills numbering gaps along a street with synthesized buildings"""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or get_config()

    def _observed(self, buildings: List[Building], street_name: str) -> Dict[int, Building]:
        """First real building per house number on this street"""
        target = normalize_street(street_name)
        observed: Dict[int, Building] = {}
        for building in buildings:
            if building.synthesized or building.house_number is None:
                continue
            if building.street and normalize_street(building.street) != target:
                continue
            observed.setdefault(building.house_number, building)
        return observed

    def _sequences(self, numbers: List[int]) -> List[Tuple[int, int, int]]:
        """(low, high, step) per numbering sequence"""
        if is_dual_sequence(numbers):
            sequences = []
            for parity in (1, 0):
                side = [n for n in numbers if n % 2 == parity]
                sequences.append((min(side), max(side), 2))
            return sequences
        return [(min(numbers), max(numbers), infer_step(numbers))]

    def candidates(self, numbers: List[int]) -> List[int]:
        """
        House numbers worth synthesizing, in priority order

        Interior gaps first, then extrapolations ordered by distance from the
        observed range, alternating below and above. Observed numbers are
        never candidates.
        """
        span = self.config.inference.extrapolation_span
        low_all, high_all = min(numbers), max(numbers)
        observed = set(numbers)

        interior: List[int] = []
        outward: List[Tuple[int, int, int]] = []  # (distance rank, side, number)
        for low, high, step in self._sequences(numbers):
            if not step or step <= 0:
                continue
            interior.extend(n for n in range(low, high + 1, step) if n not in observed)

            k = 1
            while low - k * step >= max(1, low_all - span):
                outward.append((k, 0, low - k * step))
                k += 1
            k = 1
            while high + k * step <= high_all + span:
                outward.append((k, 1, high + k * step))
                k += 1

        outward.sort()
        ordered = sorted(set(interior)) + [n for _, _, n in outward]
        return [n for n in dict.fromkeys(ordered) if n not in observed and n > 0]

    def _position(self, number: int, observed: Dict[int, Building]) -> Tuple[float, float]:
        """Offset from the nearest observed number along the street's per-number vector"""
        low, high = min(observed), max(observed)
        d_lat = (observed[high].lat - observed[low].lat) / (high - low)
        d_lng = (observed[high].lng - observed[low].lng) / (high - low)
        nearest = min(observed, key=lambda m: (abs(m - number), m))
        delta = number - nearest
        return observed[nearest].lat + delta * d_lat, observed[nearest].lng + delta * d_lng

    def fill_gaps(self, buildings: List[Building], street_name: str) -> List[Building]:
        """
        Synthesize buildings for the numbering gaps of one street

        Only real (non-synthesized) numbered buildings on the street count as
        observations, so running this again over its own output adds nothing.

        Returns:
            The additional synthesized buildings only
        """
        cfg = self.config.inference
        observed = self._observed(buildings, street_name)
        if len(observed) < cfg.min_observed_numbers:
            logger.debug(f"{street_name}: {len(observed)} numbered buildings, not enough to infer a pattern")
            return []

        numbers = sorted(observed)
        cap = math.floor(cfg.max_synthesized_ratio * len(numbers))
        selected = self.candidates(numbers)[:cap]

        present = {b.house_number for b in buildings if b.house_number is not None}
        slug = slugify(street_name)
        synthesized = []
        for number in selected:
            if number in present:
                continue
            lat, lng = self._position(number, observed)
            if not is_valid_coordinate(lat, lng):
                continue
            synthesized.append(Building(
                id=f"inferred_{slug}_{number}",
                address=f"{number} {street_name}",
                house_number=number,
                lat=lat,
                lng=lng,
                source=BuildingSource.INFERRED,
                confidence=cfg.synthesized_confidence,
                synthesized=True,
                street=street_name,
            ))

        if synthesized:
            step_desc = "2 per side" if is_dual_sequence(numbers) else str(infer_step(numbers))
            logger.info(f"{street_name}: step {step_desc}, synthesized {len(synthesized)} buildings from {len(numbers)} observed")
        return synthesized
