"""
Domain services for trips app - itinerary signal source and extraction.

Itineraries are owned by a separate itinerary service. This module fetches
them on a best-effort basis and turns them into a UserTravelProfile.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import requests

from .dtos import UserTravelProfile

logger = logging.getLogger(__name__)


class ItinerarySource(ABC):
    """Abstract base class for itinerary providers"""

    @abstractmethod
    def fetch_user_itineraries(self, user_id: str, credential: Optional[str]) -> List[Dict[str, Any]]:
        """
        Fetch the itineraries of a user.
        Returns an empty list when nothing can be fetched; never raises.
        """
        pass


class HttpItinerarySource(ItinerarySource):
    """Client for the itinerary service REST API"""

    ITINERARIES_PATH = '/api/itineraries/user'

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> 'HttpItinerarySource':
        from django.conf import settings

        return cls(settings.ITINERARY_SERVICE_URL, timeout=settings.ITINERARY_SERVICE_TIMEOUT)

    def fetch_user_itineraries(self, user_id: str, credential: Optional[str]) -> List[Dict[str, Any]]:
        """
        Calls GET /api/itineraries/user with the caller's bearer credential.

        Timeouts, connection errors, non-success responses and malformed
        payloads all degrade to an empty list so that ranking falls back to
        the generic strategy instead of failing the request.
        """
        if not credential:
            logger.info(f"No credential for user {user_id}, skipping itinerary fetch")
            return []

        url = f"{self.base_url}{self.ITINERARIES_PATH}"
        try:
            response = self.session.get(
                url,
                headers={'Authorization': f"Bearer {credential}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout:
            logger.warning(f"Itinerary service timed out after {self.timeout}s for user {user_id}")
            return []
        except requests.RequestException as e:
            logger.warning(f"Itinerary service unavailable for user {user_id}: {str(e)}")
            return []
        except ValueError:
            logger.warning(f"Itinerary service returned a non-JSON body for user {user_id}")
            return []

        if not isinstance(payload, dict) or not payload.get('success'):
            logger.warning(f"Itinerary service reported failure for user {user_id}")
            return []

        data = payload.get('data')
        if not isinstance(data, list):
            logger.warning(f"Malformed itinerary payload for user {user_id}")
            return []

        return [item for item in data if isinstance(item, dict)]


class TravelSignalExtractor:
    """
    Turns raw itineraries into normalized location tokens and preference
    tags. Itinerary payloads evolve independently of this service, so any
    missing or malformed field is skipped rather than reported.
    """

    PREFERENCE_FIELDS = {
        'budget': 'budget_types',
        'accommodation': 'accommodation_types',
        'transportation': 'transportation_types',
    }

    def build_profile(self, itineraries: Iterable[Any]) -> UserTravelProfile:
        itineraries = [i for i in (itineraries or []) if isinstance(i, dict)]
        preferences = self.extract_preferences(itineraries)
        return UserTravelProfile(
            location_tokens=self.extract_locations(itineraries),
            budget_types=tuple(preferences['budget_types']),
            accommodation_types=tuple(preferences['accommodation_types']),
            transportation_types=tuple(preferences['transportation_types']),
            itinerary_count=len(itineraries),
        )

    def extract_locations(self, itineraries: Iterable[Any]) -> frozenset:
        """
        Collects lower-cased location tokens from start/end locations, day
        plan places (name and city part of the address), accommodation
        addresses and destinations.
        """
        tokens = set()

        for itinerary in itineraries or []:
            if not isinstance(itinerary, dict):
                continue

            for key in ('startLocation', 'endLocation'):
                self._add(tokens, self._normalize(self._get(itinerary.get(key), 'name')))

            for day in self._as_list(itinerary.get('dayPlans')):
                for place in self._as_list(self._get(day, 'places')):
                    self._add(tokens, self._normalize(self._get(place, 'name')))
                    self._add(tokens, self._city_from_address(self._get(place, 'address')))

                accommodation = self._get(day, 'accommodation')
                self._add(tokens, self._city_from_address(self._get(accommodation, 'address')))

            for destination in self._as_list(itinerary.get('destinations')):
                self._add(tokens, self._normalize(self._get(destination, 'name')))

        return frozenset(tokens)

    def extract_preferences(self, itineraries: Iterable[Any]) -> Dict[str, List[str]]:
        """Deduplicated preference values in first-seen order."""
        preferences = {target: [] for target in self.PREFERENCE_FIELDS.values()}

        for itinerary in itineraries or []:
            prefs = self._get(itinerary, 'preferences')
            if not isinstance(prefs, dict):
                continue
            for source, target in self.PREFERENCE_FIELDS.items():
                value = prefs.get(source)
                if isinstance(value, str) and value and value not in preferences[target]:
                    preferences[target].append(value)

        return preferences

    # Helper methods
    @staticmethod
    def _get(obj: Any, key: str) -> Any:
        return obj.get(key) if isinstance(obj, dict) else None

    @staticmethod
    def _as_list(value: Any) -> list:
        return value if isinstance(value, list) else []

    @staticmethod
    def _normalize(value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        return value.strip().lower() or None

    def _city_from_address(self, address: Any) -> Optional[str]:
        # "Galle Fort, Galle, Sri Lanka" -> "galle fort"
        if not isinstance(address, str):
            return None
        return self._normalize(address.split(',')[0])

    @staticmethod
    def _add(tokens: set, token: Optional[str]) -> None:
        if token:
            tokens.add(token)
