"""
Building deduplication

Two records are the same building when their normalised addresses match or
their coordinates are identical. The first record seen wins.
"""

from typing import Iterable, List, Set, Tuple

from loguru import logger

from .addresses import normalize_address
from .geometry import is_valid_coordinate
from .models import Building


class Deduplicator:
    """Merges building lists from every source"""

    def merge(self, building_lists: Iterable[Iterable[Building]]) -> List[Building]:
        seen_addresses: Set[str] = set()
        seen_coords: Set[Tuple[float, float]] = set()
        merged = []
        dropped = 0
        invalid = 0

        for buildings in building_lists:
            for building in buildings:
                if not is_valid_coordinate(building.lat, building.lng):
                    invalid += 1
                    continue
                key = normalize_address(building.address)
                coords = (building.lat, building.lng)
                if (key and key in seen_addresses) or coords in seen_coords:
                    dropped += 1
                    continue
                if key:
                    seen_addresses.add(key)
                seen_coords.add(coords)
                merged.append(building)

        if dropped or invalid:
            logger.info(f"Deduplicated buildings: kept {len(merged)}, dropped {dropped} duplicates, {invalid} invalid")
        return merged
