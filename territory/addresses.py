"""
Address helpers

House-number extraction from free text and geocoder address components,
and the normalisation used as the deduplication key.
"""

import re
from typing import Any, Dict, Iterable, Optional

MIN_HOUSE_NUMBER = 1
MAX_HOUSE_NUMBER = 9999

# Tried in order; the first match inside the valid range wins
HOUSE_NUMBER_PATTERNS = [
    re.compile(r"^\s*(\d+)\b"),               # 123 Main St, 123-125 Main St
    re.compile(r"^\s*(\d+)[A-Za-z]\b"),       # 123A Main St
    re.compile(r"\b(\d+)\s+[A-Za-z]+\s+[A-Za-z]+"),  # Unit B, 123 Main Street
]

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[,.]")


def _in_range(number: int) -> bool:
    return MIN_HOUSE_NUMBER <= number <= MAX_HOUSE_NUMBER


def parse_house_number(value: Any) -> Optional[int]:
    """
    House number from an addr:housenumber tag or a street_number component

    Accepts "12", "12A", "12-14" (first number). Returns None when nothing in
    1..9999 is found.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value if _in_range(value) else None
    match = re.match(r"\s*(\d+)", str(value))
    if not match:
        return None
    number = int(match.group(1))
    return number if _in_range(number) else None


def extract_house_number(address: Optional[str]) -> Optional[int]:
    """Leading house number of a free-text address, or None"""
    if not address:
        return None
    for pattern in HOUSE_NUMBER_PATTERNS:
        match = pattern.search(address)
        if match:
            number = int(match.group(1))
            if _in_range(number):
                return number
    return None


def component(components: Iterable[Dict[str, Any]], kind: str, short: bool = False) -> Optional[str]:
    """First address component of a given type (Google address_components shape)"""
    for comp in components or []:
        if kind in comp.get("types", []):
            return comp.get("short_name" if short else "long_name")
    return None


def house_number_from_components(components: Iterable[Dict[str, Any]]) -> Optional[int]:
    return parse_house_number(component(components, "street_number"))


def normalize_address(address: Optional[str]) -> str:
    """Lower-case, strip commas/periods, collapse whitespace"""
    if not address:
        return ""
    text = _PUNCTUATION.sub(" ", address.lower())
    return _WHITESPACE.sub(" ", text).strip()


STREET_SUFFIXES = {
    "ave": "avenue",
    "av": "avenue",
    "st": "street",
    "rd": "road",
    "dr": "drive",
    "blvd": "boulevard",
    "cres": "crescent",
    "crt": "court",
    "ct": "court",
    "pl": "place",
    "ln": "lane",
    "cir": "circle",
    "pkwy": "parkway",
    "w": "west",
    "e": "east",
    "n": "north",
    "s": "south",
}


def normalize_street(name: Optional[str]) -> str:
    """Normalised street name with common abbreviations expanded"""
    words = normalize_address(name).split()
    return " ".join(STREET_SUFFIXES.get(w, w) for w in words)


def compose_address(
    house_number: Optional[str],
    street: Optional[str],
    city: Optional[str] = None,
    postcode: Optional[str] = None
) -> str:
    """'{number} {street}, {city} {postcode}' with missing parts left out"""
    first = " ".join(p for p in (house_number, street) if p)
    rest = " ".join(p for p in (city, postcode) if p)
    return ", ".join(p for p in (first, rest) if p)


def slugify(name: str) -> str:
    """Lower-case id fragment: 'Wilson Avenue' -> 'wilson-avenue'"""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
