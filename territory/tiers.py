"""
Ordered fallback tiers

Each data source is a Tier; run_tiers() tries them in order and stops at the
first one that yields something. A tier either returns a list (possibly
empty) or raises ProviderError, which is recorded and treated as empty.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from loguru import logger

from .errors import ProviderError

T = TypeVar("T")


class Tier(ABC, Generic[T]):
    """One data-source strategy in a fallback chain"""

    name: str = "tier"

    @abstractmethod
    def fetch(self, *args: Any, **kwargs: Any) -> List[T]:
        raise NotImplementedError


@dataclass
class TierOutcome(Generic[T]):
    tier: str
    items: List[T] = field(default_factory=list)
    error: Optional[ProviderError] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.items)

    def describe(self) -> str:
        if self.error is not None:
            return f"{self.tier} failed ({self.error})"
        return f"{self.tier} returned no results"


@dataclass
class TierRun(Generic[T]):
    outcomes: List[TierOutcome[T]] = field(default_factory=list)

    @property
    def items(self) -> List[T]:
        for outcome in self.outcomes:
            if outcome.succeeded:
                return outcome.items
        return []

    @property
    def winner(self) -> Optional[str]:
        for outcome in self.outcomes:
            if outcome.succeeded:
                return outcome.tier
        return None

    @property
    def failures(self) -> List[TierOutcome[T]]:
        return [o for o in self.outcomes if not o.succeeded]

    def exhausted(self) -> List[str]:
        return [o.tier for o in self.outcomes]


def run_tiers(
    tiers: Sequence[Tier[T]],
    *args: Any,
    on_attempt: Optional[Callable[[str], None]] = None,
    **kwargs: Any
) -> TierRun[T]:
    """Try each tier in order until one returns a non-empty list"""
    run: TierRun[T] = TierRun()
    for tier in tiers:
        if on_attempt:
            on_attempt(tier.name)
        try:
            items = tier.fetch(*args, **kwargs)
            outcome = TierOutcome(tier=tier.name, items=list(items or []))
        except ProviderError as e:
            logger.warning(f"Tier '{tier.name}' failed: {e}")
            outcome = TierOutcome(tier=tier.name, error=e)
        run.outcomes.append(outcome)
        if outcome.succeeded:
            logger.info(f"Tier '{tier.name}' returned {len(outcome.items)} results")
            break
        logger.info(f"Tier '{tier.name}' came back empty, trying next")
    return run
