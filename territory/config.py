"""
Configuration settings for the territory detection pipeline
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import os

from dotenv import load_dotenv
from loguru import logger


@dataclass
class APIConfig:
    """API endpoints and configuration"""
    # Overpass API (OSM) - boundary, street and building queries
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_timeout: int = 25  # Server-side [timeout:] for Overpass QL

    # Nominatim (gazetteer)
    nominatim_url: str = "https://nominatim.openstreetmap.org"

    # Google Maps Platform (autocomplete, nearby search, geocoding)
    google_maps_url: str = "https://maps.googleapis.com/maps/api"
    google_maps_api_key: str = ""

    # Territory backend (overlap validation + persistence)
    backend_url: str = "http://localhost:4000/api"
    backend_token: str = ""

    # Request settings
    request_timeout: int = 15  # Client-side timeout for every external call
    max_retries: int = 2
    retry_delay: float = 1.0

    # User agent for API requests (Nominatim usage policy requires one)
    user_agent: str = "TerritoryBuilder/1.0"


@dataclass
class RateLimitConfig:
    """Minimum seconds between two calls to the same provider"""
    overpass: float = 1.0
    nominatim: float = 1.1
    google: float = 0.1
    backend: float = 0.0

    def interval_for(self, provider: str) -> float:
        return getattr(self, provider, 0.0)


@dataclass
class ResolverConfig:
    """Gazetteer cascade settings"""
    country: str = "Canada"
    country_code: str = "ca"
    min_query_length: int = 2

    # A candidate is accepted if its place type is allowed for the level
    # or its importance is above the threshold
    importance_threshold: float = 0.45
    allowed_types: Dict[str, List[str]] = field(default_factory=lambda: {
        "area": ["state", "province", "region", "administrative"],
        "municipality": ["city", "town", "village", "municipality", "administrative"],
        "community": ["neighbourhood", "suburb", "quarter", "district", "hamlet", "residential"],
    })
    result_caps: Dict[str, int] = field(default_factory=lambda: {
        "area": 10,
        "municipality": 15,
        "community": 25,
    })


@dataclass
class DetectionConfig:
    """Street discovery and building detection settings"""
    # OSM building=* values treated as residential (user-configurable)
    building_types: List[str] = field(default_factory=lambda: [
        "residential",
        "house",
        "apartments",
        "detached",
        "semidetached_house",
        "terrace",
        "bungalow",
        "duplex",
        "townhouse",
        "condo",
    ])
    street_highway_types: List[str] = field(default_factory=lambda: [
        "residential",
        "living_street",
        "unclassified",
    ])

    boundary_padding_m: float = 1000.0
    search_radius_m: float = 150.0
    polygon_padding_m: float = 100.0

    # Nearby-place fallback
    nearby_keywords: List[str] = field(default_factory=lambda: [
        "houses",
        "apartments",
        "homes",
        "residential",
    ])
    inter_query_delay_s: float = 0.2

    # Reverse-geocoding grid fallback
    grid_step_m: float = 40.0
    grid_max_samples: int = 25
    precise_address_types: List[str] = field(default_factory=lambda: [
        "street_address",
        "premise",
        "subpremise",
    ])

    # Forward-geocoding last resort: "{n} {street}" for n in range
    forward_geocode_range: Tuple[int, int] = (1, 100)

    # External calls allowed per detection session
    max_api_calls: int = 400

    max_streets_per_community: int = 100
    max_autocomplete_streets: int = 30

    # Minimal known streets per community, used when every provider fails
    fallback_streets: Dict[str, List[str]] = field(default_factory=lambda: {
        "downsview": [
            "Wilson Avenue",
            "Keele Street",
            "Sheppard Avenue West",
            "Dufferin Street",
            "Chesswood Drive",
        ],
        "brampton east": [
            "Queen Street East",
            "Airport Road",
            "Goreway Drive",
        ],
        "the annex": [
            "Bloor Street West",
            "Spadina Road",
            "Huron Street",
        ],
    })


@dataclass
class InferenceConfig:
    """House-number pattern inference settings"""
    extrapolation_span: int = 50
    max_synthesized_ratio: float = 3.0
    min_observed_numbers: int = 3
    synthesized_confidence: float = 0.3

    # Confidence given to observed records, by source
    source_confidence: Dict[str, float] = field(default_factory=lambda: {
        "overpass": 0.9,
        "reverse_geocode": 0.8,
        "forward_geocode": 0.7,
        "nearby_search": 0.6,
    })


@dataclass
class PipelineConfig:
    """Pipeline configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)

    default_zone_type: str = "residential"


# Global config instance
config = PipelineConfig()


def get_config() -> PipelineConfig:
    """Get global configuration"""
    return config


def load_environment(target: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Load a .env file and apply environment overrides to the configuration

    Existing environment variables always win over the .env file.
    """
    target = target or config

    env_paths = [
        Path(__file__).parent.parent / ".env",  # Project root
        Path.cwd() / ".env",
        Path.home() / ".env",
    ]
    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.info(f"Loaded .env file from {env_path}")
            break
    else:
        logger.debug("No .env file found in common locations")

    target.api.google_maps_api_key = os.getenv("GOOGLE_MAPS_API_KEY", target.api.google_maps_api_key)
    target.api.backend_url = os.getenv("TERRITORY_API_URL", target.api.backend_url)
    target.api.backend_token = os.getenv("TERRITORY_API_TOKEN", target.api.backend_token)
    target.api.overpass_url = os.getenv("OVERPASS_URL", target.api.overpass_url)
    target.api.nominatim_url = os.getenv("NOMINATIM_URL", target.api.nominatim_url)

    if not target.api.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not set - places fallbacks will fail")

    return target


def validate_config(config: PipelineConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ValueError if any required value is missing or invalid.
    """
    errors = []

    if not config.api.overpass_url:
        errors.append("api.overpass_url is required but not set")
    if not config.api.nominatim_url:
        errors.append("api.nominatim_url is required but not set")
    if not 10 <= config.api.request_timeout <= 20:
        errors.append(f"api.request_timeout must be between 10 and 20 seconds, got {config.api.request_timeout}")
    if config.api.max_retries < 1:
        errors.append(f"api.max_retries must be at least 1, got {config.api.max_retries}")

    if config.resolver.min_query_length < 1:
        errors.append("resolver.min_query_length must be positive")
    for level in ("area", "municipality", "community"):
        if level not in config.resolver.allowed_types:
            errors.append(f"resolver.allowed_types has no entry for '{level}'")
        cap = config.resolver.result_caps.get(level, 0)
        if cap <= 0:
            errors.append(f"resolver.result_caps['{level}'] must be positive, got {cap}")

    detection = config.detection
    if not detection.building_types:
        errors.append("detection.building_types must not be empty")
    if detection.boundary_padding_m <= 0:
        errors.append(f"detection.boundary_padding_m must be positive, got {detection.boundary_padding_m}")
    if detection.search_radius_m <= 0:
        errors.append(f"detection.search_radius_m must be positive, got {detection.search_radius_m}")
    if detection.polygon_padding_m < 0:
        errors.append(f"detection.polygon_padding_m must not be negative, got {detection.polygon_padding_m}")
    low, high = detection.forward_geocode_range
    if low < 1 or high < low:
        errors.append(f"detection.forward_geocode_range is invalid: {detection.forward_geocode_range}")
    if detection.max_api_calls <= 0:
        errors.append("detection.max_api_calls must be positive")

    inference = config.inference
    if inference.extrapolation_span < 0:
        errors.append("inference.extrapolation_span must not be negative")
    if inference.max_synthesized_ratio < 0:
        errors.append("inference.max_synthesized_ratio must not be negative")
    if inference.min_observed_numbers < 2:
        errors.append(f"inference.min_observed_numbers must be at least 2, got {inference.min_observed_numbers}")
    if not 0.0 <= inference.synthesized_confidence <= 1.0:
        errors.append("inference.synthesized_confidence must be within [0, 1]")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
