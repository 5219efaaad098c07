"""
Test helpers shared by the app test suites.
"""
import mongomock
from mongoengine import connect, disconnect


class MongoTestMixin:
    """
    Points mongoengine at an in-memory mongomock client for the duration of a
    test class. Collections listed in ``mongo_documents`` get their indexes
    built before each test and are dropped afterwards.
    """

    mongo_documents = ()

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        disconnect(alias='default')
        connect(
            'community-test',
            host='mongodb://localhost',
            alias='default',
            mongo_client_class=mongomock.MongoClient,
        )

    @classmethod
    def tearDownClass(cls):
        disconnect(alias='default')
        super().tearDownClass()

    def setUp(self):
        super().setUp()
        for document in self.mongo_documents:
            document.ensure_indexes()

    def tearDown(self):
        for document in self.mongo_documents:
            document.drop_collection()
        super().tearDown()
