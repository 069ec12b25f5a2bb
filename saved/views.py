import asyncio
import logging

from asgiref.sync import async_to_sync
from rest_framework import viewsets, permissions, decorators, response, status
from rest_framework.exceptions import NotFound

from datastore import errors
from datastore.records import FilterCriteria
from datastore.registry import get_store
from listings.serializers import PropertySerializer, SortSerializer
from listings.sorting import sort_properties
from listings.views import load_saved_ids
from realestate_browser.exceptions import BackendUnavailable
from .serializers import SavePropertySerializer, SavedSearchSerializer
from .tracker import get_tracker

logger = logging.getLogger(__name__)


class SavedPropertyViewSet(viewsets.ViewSet):
    """
    Saved properties page.
    - GET    /api/saved/properties/          saved property details
    - POST   /api/saved/properties/          {"property_id": <id>}
    - DELETE /api/saved/properties/{id}/     remove one
    - POST   /api/saved/properties/clear/    remove all, one by one
    """
    permission_classes = [permissions.AllowAny]
    lookup_value_regex = r"\d+"

    def get_store(self):
        return get_store()

    def list(self, request):
        store = self.get_store()

        async def load():
            saved_ids = (await get_tracker(store)).saved_ids
            if not saved_ids:
                return [], saved_ids
            properties = await store.list_all()
            return [p for p in properties if p.id in saved_ids], saved_ids

        try:
            properties, saved_ids = async_to_sync(load)()
        except errors.DataStoreError as e:
            logger.error("Error loading saved properties: %s", e)
            raise BackendUnavailable("Failed to load saved properties. Please try again.")
        return response.Response({
            "count": len(properties),
            "results": PropertySerializer(properties, many=True, context={"saved_ids": saved_ids}).data,
        })

    def create(self, request):
        serializer = SavePropertySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        property_id = serializer.validated_data["property_id"]
        store = self.get_store()

        async def save():
            await store.get_by_id(property_id)
            tracker = await get_tracker(store)
            return await tracker.save(property_id)

        try:
            ok = async_to_sync(save)()
        except errors.NotFound:
            raise NotFound(detail="Property not found.")
        except errors.DataStoreError as e:
            logger.error("Error saving property %s: %s", property_id, e)
            ok = False
        if not ok:
            raise BackendUnavailable("Failed to save property. Please try again.")
        logger.info("Property saved property_id=%s", property_id)
        return response.Response({"property_id": property_id, "is_saved": True}, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        property_id = int(pk)
        store = self.get_store()

        async def unsave():
            tracker = await get_tracker(store)
            return await tracker.unsave(property_id)

        try:
            ok = async_to_sync(unsave)()
        except errors.DataStoreError as e:
            logger.error("Error unsaving property %s: %s", property_id, e)
            ok = False
        if not ok:
            raise BackendUnavailable("Failed to remove property from saved list. Please try again.")
        logger.info("Property unsaved property_id=%s", property_id)
        return response.Response(status=status.HTTP_204_NO_CONTENT)

    @decorators.action(detail=False, methods=["post"])
    def clear(self, request):
        store = self.get_store()

        async def clear_all():
            tracker = await get_tracker(store)
            removed = len(tracker.saved_ids)
            failed = await tracker.unsave_all()
            return removed - len(failed), failed

        try:
            removed, failed = async_to_sync(clear_all)()
        except errors.DataStoreError as e:
            logger.error("Error clearing saved properties: %s", e)
            raise BackendUnavailable("Failed to clear saved properties. Please try again.")
        if failed:
            logger.warning("Clear saved properties left ids=%s", failed)
            return response.Response(
                {"detail": "Failed to clear saved properties.", "removed": removed, "failed": failed},
                status=BackendUnavailable.status_code,
            )
        return response.Response({"detail": "All saved properties have been removed", "removed": removed})


class SavedSearchViewSet(viewsets.ViewSet):
    """
    Saved searches.
    - GET    /api/saved/searches/            list
    - POST   /api/saved/searches/            {"name", "filters", "result_count"?}
    - DELETE /api/saved/searches/{id}/       delete
    - GET    /api/saved/searches/{id}/run/   run the stored filters (?sort=)
    When result_count is omitted it is computed by running the search.
    """
    permission_classes = [permissions.AllowAny]
    lookup_value_regex = r"\d+"

    def get_store(self):
        return get_store()

    def _find(self, searches, pk):
        for search in searches:
            if search.id == int(pk):
                return search
        raise NotFound(detail="Saved search not found.")

    def list(self, request):
        try:
            searches = async_to_sync(self.get_store().list_saved_searches)()
        except errors.DataStoreError as e:
            logger.error("Error fetching saved searches: %s", e)
            raise BackendUnavailable("Failed to load saved searches. Please try again.")
        return response.Response(SavedSearchSerializer(searches, many=True).data)

    def create(self, request):
        serializer = SavedSearchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        name = serializer.validated_data["name"]
        filters = serializer.validated_data.get("filters") or FilterCriteria()
        result_count = serializer.validated_data.get("result_count")
        store = self.get_store()

        async def save():
            count = result_count
            if count is None:
                results = await (store.search(filters) if filters else store.list_all())
                count = len(results)
            return await store.save_search(name, filters, count)

        try:
            search = async_to_sync(save)()
        except errors.DataStoreError as e:
            logger.error("Error saving search name=%s: %s", name, e)
            raise BackendUnavailable("Failed to save search. Please try again.")
        logger.info("Search saved id=%s name=%s filters=%s", search.id, search.name, search.filters.as_dict())
        return response.Response(SavedSearchSerializer(search).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        store = self.get_store()

        async def delete():
            self._find(await store.list_saved_searches(), pk)
            return await store.delete_search(int(pk))

        try:
            ok = async_to_sync(delete)()
        except errors.DataStoreError as e:
            logger.error("Error deleting saved search %s: %s", pk, e)
            ok = False
        if not ok:
            raise BackendUnavailable("Failed to delete saved search. Please try again.")
        logger.info("Saved search deleted id=%s", pk)
        return response.Response(status=status.HTTP_204_NO_CONTENT)

    @decorators.action(detail=True, methods=["get"])
    def run(self, request, pk=None):
        ordering = SortSerializer(data=request.query_params)
        ordering.is_valid(raise_exception=True)
        sort_key = ordering.validated_data["sort"]
        store = self.get_store()

        async def load():
            search = self._find(await store.list_saved_searches(), pk)
            fetch = store.search(search.filters) if search.filters else store.list_all()
            properties, saved_ids = await asyncio.gather(fetch, load_saved_ids(store))
            return search, properties, saved_ids

        try:
            search, properties, saved_ids = async_to_sync(load)()
        except errors.DataStoreError as e:
            logger.error("Error running saved search %s: %s", pk, e)
            raise BackendUnavailable("Failed to run saved search. Please try again.")
        results = sort_properties(properties, sort_key)
        return response.Response({
            "search": SavedSearchSerializer(search).data,
            "count": len(results),
            "sort": sort_key,
            "results": PropertySerializer(results, many=True, context={"saved_ids": saved_ids}).data,
        })
