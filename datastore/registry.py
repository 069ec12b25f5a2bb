import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

_store = None


def build_store(config=None):
    """Create the backend named by settings.DATASTORE["BACKEND"]."""
    config = config or settings.DATASTORE
    backend = config.get("BACKEND", "memory")
    if backend == "memory":
        from .memory import InMemoryStore

        latency = (config.get("LATENCY_MIN", 0.15), config.get("LATENCY_MAX", 0.4))
        return InMemoryStore.from_fixture(config.get("FIXTURE"), latency=latency)
    if backend == "remote":
        from .remote import RecordClient, RemoteTableStore

        if not config.get("API_URL"):
            raise ImproperlyConfigured("DATASTORE_BACKEND=remote requires RECORD_API_URL")
        client = RecordClient(
            config["API_URL"],
            project_id=config.get("PROJECT_ID"),
            public_key=config.get("PUBLIC_KEY"),
            timeout=config.get("TIMEOUT", 10),
        )
        return RemoteTableStore(client)
    raise ImproperlyConfigured(f"Unknown DATASTORE backend: {backend!r}")


def get_store():
    global _store
    if _store is None:
        _store = build_store()
        logger.info("Data store initialised: %s", type(_store).__name__)
    return _store


def set_store(store):
    """Swap the active store, returning the previous one (used by tests)."""
    global _store
    previous, _store = _store, store
    return previous
