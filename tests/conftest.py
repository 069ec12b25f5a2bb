import pytest
from rest_framework.test import APIClient

from datastore.memory import InMemoryStore
from datastore.records import Property
from datastore.registry import set_store


@pytest.fixture
def store():
    """Fresh fixture-backed store without simulated latency, installed for the views."""
    store = InMemoryStore.from_fixture(latency=(0, 0))
    previous = set_store(store)
    yield store
    set_store(previous)


@pytest.fixture
def api_client(store):
    return APIClient()


@pytest.fixture
def property_factory():
    def create_property(id, **extra):
        data = dict(
            title=f"Property {id}",
            price=100000,
            address="1 Main Street",
            property_type="house",
            bedrooms=2,
            bathrooms=1,
            square_feet=1000,
        )
        data.update(extra)
        return Property(id=id, **data)
    return create_property
