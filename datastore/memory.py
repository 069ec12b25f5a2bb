import asyncio
import json
import logging
import random
import threading
from dataclasses import replace
from pathlib import Path

from django.utils import timezone

from listings.filters import apply_filters, normalize_filters
from .base import (
    PropertyStore, FEATURED_LIMIT, SIMILAR_LIMIT, TASK_PAGE_SIZE,
    is_similar, task_sort_key,
)
from .errors import NotFound
from .mapping import property_from_record, saved_search_from_record, task_from_record, to_date
from .records import Property, SavedSearch, Task, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_FIXTURE = Path(__file__).resolve().parent / "fixtures" / "properties.json"
DEFAULT_LATENCY = (0.15, 0.4)


class InMemoryStore(PropertyStore):
    """
    Development / test backend: plain records in memory with simulated latency.
    Each instance owns its own copy of the seed data.
    """

    def __init__(self, properties=(), saved_ids=(), saved_searches=(), tasks=(),
                 latency=DEFAULT_LATENCY, rng=None):
        self.latency = latency
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._properties = [p if isinstance(p, Property) else property_from_record(p) for p in properties]
        self._saved_ids = list(dict.fromkeys(int(pid) for pid in saved_ids))
        self._searches = [s if isinstance(s, SavedSearch) else saved_search_from_record(s) for s in saved_searches]
        self._tasks = [t if isinstance(t, Task) else task_from_record(t) for t in tasks]
        self._next_search_id = max((s.id for s in self._searches), default=0) + 1
        self._next_task_id = max((t.id for t in self._tasks), default=0) + 1

    @classmethod
    def from_fixture(cls, path=None, **kwargs):
        path = Path(path or DEFAULT_FIXTURE)
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        logger.debug("Seeding in-memory store from %s", path)
        return cls(
            properties=data.get("properties", []),
            saved_ids=data.get("saved_property_ids", []),
            saved_searches=data.get("saved_searches", []),
            tasks=data.get("tasks", []),
            **kwargs,
        )

    async def _delay(self):
        low, high = self.latency
        if high > 0:
            await asyncio.sleep(self._rng.uniform(low, high))

    def _find(self, property_id):
        for prop in self._properties:
            if prop.id == property_id:
                return prop
        raise NotFound("Property", property_id)

    # Properties

    async def list_all(self):
        await self._delay()
        return list(self._properties)

    async def get_by_id(self, property_id):
        await self._delay()
        return self._find(int(property_id))

    async def search(self, filters):
        await self._delay()
        return apply_filters(self._properties, normalize_filters(filters))

    async def list_featured(self, limit=FEATURED_LIMIT):
        await self._delay()
        return [p for p in self._properties if p.featured][:limit]

    async def list_similar(self, property_id, limit=SIMILAR_LIMIT):
        source = await self.get_by_id(property_id)
        await self._delay()
        return [p for p in self._properties if is_similar(p, source)][:limit]

    # Saved properties

    async def list_saved_ids(self):
        await self._delay()
        return list(self._saved_ids)

    async def save(self, property_id):
        await self._delay()
        property_id = int(property_id)
        if not any(p.id == property_id for p in self._properties):
            logger.warning("Refusing to save unknown property id=%s", property_id)
            return False
        with self._lock:
            if property_id not in self._saved_ids:
                self._saved_ids.append(property_id)
        return True

    async def unsave(self, property_id):
        await self._delay()
        with self._lock:
            if int(property_id) in self._saved_ids:
                self._saved_ids.remove(int(property_id))
        return True

    # Saved searches

    async def list_saved_searches(self):
        await self._delay()
        return list(self._searches)

    async def save_search(self, name, filters, result_count=0):
        await self._delay()
        with self._lock:
            search = SavedSearch(
                id=self._next_search_id,
                name=name,
                filters=normalize_filters(filters),
                result_count=result_count or 0,
                created_at=timezone.now(),
            )
            self._next_search_id += 1
            self._searches.append(search)
        return search

    async def delete_search(self, search_id):
        await self._delay()
        with self._lock:
            before = len(self._searches)
            self._searches = [s for s in self._searches if s.id != int(search_id)]
            return len(self._searches) < before

    # Tasks

    async def list_tasks(self):
        await self._delay()
        return sorted(self._tasks, key=task_sort_key)[:TASK_PAGE_SIZE]

    async def get_task(self, task_id):
        await self._delay()
        for task in self._tasks:
            if task.id == int(task_id):
                return task
        raise NotFound("Task", task_id)

    async def create_task(self, fields):
        await self._delay()
        now = timezone.now()
        with self._lock:
            task = Task(
                id=self._next_task_id,
                name=fields.get("name", ""),
                description=fields.get("description") or "",
                status=fields.get("status") or TaskStatus.NOT_STARTED,
                due_date=to_date(fields.get("due_date")),
                assigned_to=fields.get("assigned_to"),
                property_id=fields.get("property_id"),
                created_on=now,
                modified_on=now,
            )
            self._next_task_id += 1
            self._tasks.append(task)
        return task

    async def update_task(self, task_id, fields):
        current = await self.get_task(task_id)
        changes = {k: v for k, v in fields.items() if k in (
            "name", "description", "status", "due_date", "assigned_to", "property_id",
        )}
        if "due_date" in changes:
            changes["due_date"] = to_date(changes["due_date"])
        updated = replace(current, modified_on=timezone.now(), **changes)
        with self._lock:
            self._tasks = [updated if t.id == current.id else t for t in self._tasks]
        return updated

    async def delete_task(self, task_id):
        await self._delay()
        with self._lock:
            before = len(self._tasks)
            self._tasks = [t for t in self._tasks if t.id != int(task_id)]
            return len(self._tasks) < before

    async def list_tasks_for_property(self, property_id):
        await self._delay()
        return sorted((t for t in self._tasks if t.property_id == int(property_id)), key=task_sort_key)
