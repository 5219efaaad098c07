"""
Data Transfer Objects for travel-history signals.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Tuple


@dataclass(frozen=True)
class UserTravelProfile:
    """
    Location and preference signals derived from a user's itineraries.
    Built fresh for every ranking request and never persisted.
    """
    location_tokens: FrozenSet[str] = field(default_factory=frozenset)
    budget_types: Tuple[str, ...] = ()
    accommodation_types: Tuple[str, ...] = ()
    transportation_types: Tuple[str, ...] = ()
    itinerary_count: int = 0

    @property
    def is_empty(self) -> bool:
        """True when no itineraries were available to derive signals from."""
        return self.itinerary_count == 0

    def preference_tags(self) -> dict:
        return {
            'budget_types': list(self.budget_types),
            'accommodation_types': list(self.accommodation_types),
            'transportation_types': list(self.transportation_types),
        }
