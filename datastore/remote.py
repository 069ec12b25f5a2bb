import logging

import requests
from asgiref.sync import sync_to_async

from listings.filters import Condition, apply_filters, normalize_filters, to_conditions
from .base import (
    PropertyStore, FEATURED_LIMIT, SIMILAR_LIMIT, SIMILAR_PRICE_DELTA, TASK_PAGE_SIZE,
    is_similar,
)
from .errors import BackendFailure, DataStoreError, NotFound
from .mapping import (
    PROPERTY_TABLE, SAVED_TABLE, TASK_TABLE,
    PROPERTY_FIELDS, SAVED_SEARCH_FIELDS, TASK_FIELDS,
    property_from_record, saved_search_from_record, saved_search_to_record,
    task_from_record, task_to_record,
)

logger = logging.getLogger(__name__)


class RecordClient:
    """
    Thin blocking client for the hosted record/table API.

    Every endpoint answers with an envelope:
    {"success": bool, "message": str, "data": ..., "results": [{"success", "message", "data"}]}
    """

    def __init__(self, base_url, project_id, public_key, timeout=10, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Project-Id": project_id or "",
            "Authorization": f"Bearer {public_key}",
            "Accept": "application/json",
        })

    def _call(self, method, path, payload=None, params=None, missing_ok=False):
        url = f"{self.base_url}/{path}"
        try:
            resp = self.session.request(method, url, json=payload, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendFailure(f"{method} {path} failed: {e}") from e
        if missing_ok and resp.status_code == 404:
            return {"success": True, "data": None}
        try:
            body = resp.json()
        except ValueError as e:
            raise BackendFailure(f"{method} {path} returned a non-JSON body (HTTP {resp.status_code})") from e
        if not isinstance(body, dict):
            raise BackendFailure(f"{method} {path} returned an unexpected body")
        if resp.status_code >= 400:
            raise BackendFailure(body.get("message") or f"{method} {path} -> HTTP {resp.status_code}")
        return body

    def fetch_records(self, table, fields, where=(), order_by=(), limit=None, offset=0):
        payload = {"fields": [{"field": {"Name": name}} for name in fields]}
        if where:
            payload["where"] = [c.as_payload() for c in where]
        if order_by:
            payload["orderBy"] = [{"fieldName": name, "sorttype": direction} for name, direction in order_by]
        if limit is not None:
            payload["pagingInfo"] = {"limit": limit, "offset": offset}
        return self._call("POST", f"tables/{table}/records/query", payload)

    def get_record_by_id(self, table, record_id, fields):
        return self._call(
            "GET", f"tables/{table}/records/{record_id}",
            params={"fields": ",".join(fields)}, missing_ok=True,
        )

    def create_record(self, table, records):
        return self._call("POST", f"tables/{table}/records", {"records": records})

    def update_record(self, table, records):
        return self._call("PATCH", f"tables/{table}/records", {"records": records})

    def delete_record(self, table, record_ids):
        return self._call("DELETE", f"tables/{table}/records", {"RecordIds": list(record_ids)})


def _single_record(body, kind, record_id):
    if body.get("success") is False:
        raise BackendFailure(body.get("message") or f"fetching {kind} {record_id} failed")
    if not body.get("data"):
        raise NotFound(kind, record_id)
    return body["data"]


def _first_result(body, action):
    """Unwrap the per-record result of a single-record write."""
    if body.get("success") is False:
        raise BackendFailure(body.get("message") or f"{action} failed")
    results = body.get("results") or []
    failed = [r for r in results if not r.get("success")]
    if failed:
        raise BackendFailure(failed[0].get("message") or f"{action} failed")
    return results[0].get("data") if results else None


class RemoteTableStore(PropertyStore):
    def __init__(self, client):
        self.client = client

    async def _run(self, method, *args, **kwargs):
        return await sync_to_async(method, thread_sensitive=False)(*args, **kwargs)

    async def _fetch(self, table, fields, **kwargs):
        body = await self._run(self.client.fetch_records, table, fields, **kwargs)
        if body.get("success") is False:
            raise BackendFailure(body.get("message") or f"fetching {table} failed")
        return body.get("data") or []

    async def _fetch_properties(self, **kwargs):
        rows = await self._fetch(PROPERTY_TABLE, PROPERTY_FIELDS, **kwargs)
        return [property_from_record(row) for row in rows]

    # Properties

    async def list_all(self):
        return await self._fetch_properties()

    async def get_by_id(self, property_id):
        body = await self._run(self.client.get_record_by_id, PROPERTY_TABLE, int(property_id), PROPERTY_FIELDS)
        return property_from_record(_single_record(body, "Property", property_id))

    async def search(self, filters):
        criteria = normalize_filters(filters)
        rows = await self._fetch_properties(where=to_conditions(criteria))
        return apply_filters(rows, criteria)

    async def list_featured(self, limit=FEATURED_LIMIT):
        rows = await self._fetch_properties(
            where=[Condition("featured_c", "ExactMatch", (True,))],
            limit=limit,
        )
        return [p for p in rows if p.featured][:limit]

    async def list_similar(self, property_id, limit=SIMILAR_LIMIT):
        source = await self.get_by_id(property_id)
        price = source.price or 0
        rows = await self._fetch_properties(
            where=[
                Condition("property_type_c", "ExactMatch", (source.property_type,)),
                Condition("Id", "NotEqualTo", (source.id,)),
                Condition("price_c", "GreaterThanOrEqualTo", (price - SIMILAR_PRICE_DELTA,)),
                Condition("price_c", "LessThanOrEqualTo", (price + SIMILAR_PRICE_DELTA,)),
            ],
            limit=limit,
        )
        return [p for p in rows if is_similar(p, source)][:limit]

    # Saved properties

    async def _saved_rows(self, property_id=None):
        where = [Condition("type_c", "ExactMatch", ("property",))]
        if property_id is not None:
            where.append(Condition("property_id_c", "ExactMatch", (int(property_id),)))
        return await self._fetch(SAVED_TABLE, ["Id", "property_id_c"], where=where)

    async def list_saved_ids(self):
        ids = []
        for row in await self._saved_rows():
            try:
                ids.append(int(row.get("property_id_c")))
            except (TypeError, ValueError):
                logger.warning("Skipping saved record Id=%s without a property id", row.get("Id"))
        return list(dict.fromkeys(ids))

    async def save(self, property_id):
        record = {"type_c": "property", "property_id_c": int(property_id)}
        try:
            body = await self._run(self.client.create_record, SAVED_TABLE, [record])
            _first_result(body, "save property")
        except DataStoreError as e:
            logger.error("Error saving property %s: %s", property_id, e)
            return False
        return True

    async def unsave(self, property_id):
        try:
            rows = await self._saved_rows(property_id)
            if not rows:
                return True
            body = await self._run(self.client.delete_record, SAVED_TABLE, [row["Id"] for row in rows])
            _first_result(body, "unsave property")
        except DataStoreError as e:
            logger.error("Error unsaving property %s: %s", property_id, e)
            return False
        return True

    # Saved searches

    async def list_saved_searches(self):
        rows = await self._fetch(
            SAVED_TABLE, SAVED_SEARCH_FIELDS,
            where=[Condition("type_c", "ExactMatch", ("search",))],
        )
        return [saved_search_from_record(row) for row in rows]

    async def save_search(self, name, filters, result_count=0):
        record = saved_search_to_record(name, normalize_filters(filters), result_count)
        body = await self._run(self.client.create_record, SAVED_TABLE, [record])
        created = _first_result(body, "save search")
        if not created:
            raise BackendFailure("save search: the store did not return the created record")
        return saved_search_from_record(created)

    async def delete_search(self, search_id):
        try:
            body = await self._run(self.client.delete_record, SAVED_TABLE, [int(search_id)])
            _first_result(body, "delete search")
        except DataStoreError as e:
            logger.error("Error deleting saved search %s: %s", search_id, e)
            return False
        return True

    # Tasks

    async def list_tasks(self):
        rows = await self._fetch(TASK_TABLE, TASK_FIELDS, order_by=[("due_date_c", "ASC")], limit=TASK_PAGE_SIZE)
        return [task_from_record(row) for row in rows]

    async def get_task(self, task_id):
        body = await self._run(self.client.get_record_by_id, TASK_TABLE, int(task_id), TASK_FIELDS)
        return task_from_record(_single_record(body, "Task", task_id))

    async def create_task(self, fields):
        body = await self._run(self.client.create_record, TASK_TABLE, [task_to_record(fields)])
        created = _first_result(body, "create task")
        if not created:
            raise BackendFailure("create task: the store did not return the created record")
        return task_from_record(created)

    async def update_task(self, task_id, fields):
        await self.get_task(task_id)
        record = {"Id": int(task_id), **task_to_record(fields)}
        body = await self._run(self.client.update_record, TASK_TABLE, [record])
        updated = _first_result(body, "update task")
        if not updated:
            return await self.get_task(task_id)
        return task_from_record(updated)

    async def delete_task(self, task_id):
        try:
            body = await self._run(self.client.delete_record, TASK_TABLE, [int(task_id)])
            _first_result(body, "delete task")
        except DataStoreError as e:
            logger.error("Error deleting task %s: %s", task_id, e)
            return False
        return True

    async def list_tasks_for_property(self, property_id):
        rows = await self._fetch(
            TASK_TABLE, TASK_FIELDS,
            where=[Condition("property_c", "EqualTo", (int(property_id),))],
            order_by=[("due_date_c", "ASC")],
        )
        return [task_from_record(row) for row in rows]
