import unittest
from unittest.mock import MagicMock

import requests

from .dtos import UserTravelProfile
from .services import HttpItinerarySource, TravelSignalExtractor


ITINERARY = {
    'startLocation': {'name': 'Colombo'},
    'endLocation': {'name': ' Galle '},
    'dayPlans': [
        {
            'places': [
                {'name': 'Sigiriya Rock', 'address': 'Sigiriya, Dambulla, Sri Lanka'},
                {'name': '', 'address': None},
            ],
            'accommodation': {'address': 'Kandy, Central Province'},
        },
        {'places': 'not-a-list'},
    ],
    'destinations': [{'name': 'Ella'}, 'broken', {'title': 'no name'}],
    'preferences': {'budget': 'medium', 'accommodation': 'hotel', 'transportation': 'train'},
}


class TravelSignalExtractorTest(unittest.TestCase):
    """Test cases for TravelSignalExtractor"""

    def setUp(self):
        self.extractor = TravelSignalExtractor()

    def test_extract_locations(self):
        """Location fields from every part of the itinerary are collected lower-cased"""
        tokens = self.extractor.extract_locations([ITINERARY])
        self.assertEqual(
            tokens,
            frozenset({'colombo', 'galle', 'sigiriya rock', 'sigiriya', 'kandy', 'ella'})
        )

    def test_malformed_itineraries_are_skipped(self):
        """Test skipping itineraries that are not mappings."""
        tokens = self.extractor.extract_locations([None, 'text', {'dayPlans': {'places': []}}, {}])
        self.assertEqual(tokens, frozenset())

    def test_extract_preferences_dedupes_in_order(self):
        """Test preference dedupe keeps first-seen order."""
        second = {'preferences': {'budget': 'luxury', 'accommodation': 'hotel', 'transportation': 42}}
        third = {'preferences': {'budget': 'medium'}}
        preferences = self.extractor.extract_preferences([ITINERARY, second, third])

        self.assertEqual(preferences['budget_types'], ['medium', 'luxury'])
        self.assertEqual(preferences['accommodation_types'], ['hotel'])
        self.assertEqual(preferences['transportation_types'], ['train'])

    def test_build_profile(self):
        """Test building a travel profile."""
        profile = self.extractor.build_profile([ITINERARY, 'garbage'])

        self.assertEqual(profile.itinerary_count, 1)
        self.assertFalse(profile.is_empty)
        self.assertIn('galle', profile.location_tokens)
        self.assertEqual(profile.budget_types, ('medium',))

    def test_empty_profile(self):
        """Test the profile with no itineraries."""
        profile = self.extractor.build_profile([])
        self.assertTrue(profile.is_empty)
        self.assertEqual(profile, UserTravelProfile())

    def test_itinerary_without_locations_is_not_empty(self):
        """Test that a location-less itinerary still counts."""
        profile = self.extractor.build_profile([{'title': 'Weekend'}])
        self.assertFalse(profile.is_empty)
        self.assertEqual(profile.location_tokens, frozenset())


class HttpItinerarySourceTest(unittest.TestCase):
    """Test cases for the itinerary service client"""

    def setUp(self):
        self.session = MagicMock()
        self.source = HttpItinerarySource('http://itineraries.local/', timeout=2.5, session=self.session)

    def mock_response(self, payload=None, status_error=None, json_error=None):
        response = MagicMock()
        if status_error:
            response.raise_for_status.side_effect = status_error
        if json_error:
            response.json.side_effect = json_error
        else:
            response.json.return_value = payload
        self.session.get.return_value = response
        return response

    def test_fetch_success(self):
        """Test fetching itineraries with a bearer token."""
        self.mock_response({'success': True, 'data': [ITINERARY, 'junk']})

        itineraries = self.source.fetch_user_itineraries('user-1', 'token-abc')

        self.assertEqual(itineraries, [ITINERARY])
        self.session.get.assert_called_once_with(
            'http://itineraries.local/api/itineraries/user',
            headers={'Authorization': 'Bearer token-abc'},
            timeout=2.5,
        )

    def test_no_credential_skips_request(self):
        """Test no request is made without a token."""
        self.assertEqual(self.source.fetch_user_itineraries('user-1', None), [])
        self.session.get.assert_not_called()

    def test_timeout_returns_empty(self):
        """Test a timeout yields no itineraries."""
        self.session.get.side_effect = requests.Timeout('slow')
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

    def test_connection_error_returns_empty(self):
        """Test a connection error yields no itineraries."""
        self.session.get.side_effect = requests.ConnectionError('refused')
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

    def test_http_error_returns_empty(self):
        """Test an error status yields no itineraries."""
        self.mock_response(status_error=requests.HTTPError('401 Unauthorized'))
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

    def test_non_json_body_returns_empty(self):
        self.mock_response(json_error=ValueError('not json'))
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

    def test_unsuccessful_payload_returns_empty(self):
        self.mock_response({'success': False, 'message': 'nope'})
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

    def test_malformed_data_returns_empty(self):
        """Test a malformed data field yields no itineraries."""
        self.mock_response({'success': True, 'data': {'not': 'a list'}})
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])

        self.mock_response(['not', 'a', 'dict'])
        self.assertEqual(self.source.fetch_user_itineraries('user-1', 'token'), [])
