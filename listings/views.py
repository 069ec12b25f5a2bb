import asyncio
import logging

from asgiref.sync import async_to_sync
from rest_framework import viewsets, permissions, decorators, response, status
from rest_framework.exceptions import NotFound

from datastore import errors
from datastore.base import FEATURED_LIMIT, SIMILAR_LIMIT
from datastore.registry import get_store
from realestate_browser.exceptions import BackendUnavailable
from saved.tracker import get_tracker
from .filters import normalize_filters, active_filter_count
from .serializers import (
    FilterCriteriaSerializer,
    SortSerializer,
    PropertySerializer,
    PropertyMarkerSerializer,
    filter_data_from_query,
)
from .sorting import sort_properties

logger = logging.getLogger(__name__)


def parse_listing_query(request):
    """Query params -> (FilterCriteria, sort key). Invalid input raises a 400."""
    filters = FilterCriteriaSerializer(data=filter_data_from_query(request.query_params))
    filters.is_valid(raise_exception=True)
    ordering = SortSerializer(data=request.query_params)
    ordering.is_valid(raise_exception=True)
    return normalize_filters(filters.validated_data), ordering.validated_data["sort"]


def parse_limit(request, default, maximum=50):
    try:
        limit = int(request.query_params.get("limit", default))
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, maximum))


async def load_saved_ids(store):
    """Saved state for list surfaces: an unavailable store means "nothing saved"."""
    try:
        tracker = await get_tracker(store)
    except errors.DataStoreError as e:
        logger.warning("Saved properties unavailable, rendering unsaved: %s", e)
        return frozenset()
    return tracker.saved_ids


async def load_properties(store, criteria):
    """Browse-all when the canonical filter is empty, search otherwise."""
    fetch = store.search(criteria) if criteria else store.list_all()
    return await asyncio.gather(fetch, load_saved_ids(store))


def map_center(properties):
    if not properties:
        return None
    return {
        "lat": sum(p.lat for p in properties) / len(properties),
        "lng": sum(p.lng for p in properties) / len(properties),
    }


class PropertyViewSet(viewsets.ViewSet):
    """
    Property browsing API.
    - GET  /api/properties/                     browse (no active filters) or search, sorted with ?sort=
    - GET  /api/properties/{id}/                detail
    - GET  /api/properties/featured/            featured listings (?limit=, default 6)
    - GET  /api/properties/{id}/similar/        same type, price within 100,000 (?limit=, default 3)
    - GET  /api/properties/map/                 map markers for the same filters as the list
    - POST /api/properties/{id}/toggle-save/    save / unsave
    Filters: price_min, price_max, property_types, bedrooms_min, bathrooms_min,
    square_feet_min, amenities, query. Sort: newest, price-low, price-high, beds-high, sqft-high.
    """
    permission_classes = [permissions.AllowAny]
    lookup_value_regex = r"\d+"  # accept only numeric ids

    def get_store(self):
        return get_store()

    def list(self, request):
        criteria, sort_key = parse_listing_query(request)
        try:
            properties, saved_ids = async_to_sync(load_properties)(self.get_store(), criteria)
        except errors.DataStoreError as e:
            logger.error("Error loading properties filters=%s: %s", criteria.as_dict(), e)
            raise BackendUnavailable("Failed to load properties. Please try again.")
        results = sort_properties(properties, sort_key)
        return response.Response({
            "mode": "search" if criteria else "browse",
            "count": len(results),
            "active_filters": active_filter_count(criteria),
            "filters": criteria.as_dict(),
            "sort": sort_key,
            "results": PropertySerializer(results, many=True, context={"saved_ids": saved_ids}).data,
        })

    def retrieve(self, request, pk=None):
        store = self.get_store()

        async def load():
            return await asyncio.gather(store.get_by_id(int(pk)), load_saved_ids(store))

        try:
            prop, saved_ids = async_to_sync(load)()
        except errors.NotFound:
            raise NotFound(detail="Property not found.")
        except errors.DataStoreError as e:
            logger.error("Error fetching property %s: %s", pk, e)
            raise BackendUnavailable("Failed to load property. Please try again.")
        return response.Response(PropertySerializer(prop, context={"saved_ids": saved_ids}).data)

    @decorators.action(detail=False, methods=["get"])
    def featured(self, request):
        store = self.get_store()
        limit = parse_limit(request, FEATURED_LIMIT)

        async def load():
            return await asyncio.gather(store.list_featured(limit), load_saved_ids(store))

        try:
            properties, saved_ids = async_to_sync(load)()
        except errors.DataStoreError as e:
            logger.error("Error fetching featured properties: %s", e)
            raise BackendUnavailable("Failed to load featured properties. Please try again.")
        return response.Response(PropertySerializer(properties, many=True, context={"saved_ids": saved_ids}).data)

    @decorators.action(detail=True, methods=["get"])
    def similar(self, request, pk=None):
        store = self.get_store()
        limit = parse_limit(request, SIMILAR_LIMIT)

        async def load():
            return await asyncio.gather(store.list_similar(int(pk), limit), load_saved_ids(store))

        try:
            properties, saved_ids = async_to_sync(load)()
        except errors.NotFound:
            raise NotFound(detail="Property not found.")
        except errors.DataStoreError as e:
            logger.error("Error fetching properties similar to %s: %s", pk, e)
            raise BackendUnavailable("Failed to load similar properties. Please try again.")
        return response.Response(PropertySerializer(properties, many=True, context={"saved_ids": saved_ids}).data)

    @decorators.action(detail=False, methods=["get"], url_path="map")
    def map_markers(self, request):
        criteria, sort_key = parse_listing_query(request)
        try:
            properties, saved_ids = async_to_sync(load_properties)(self.get_store(), criteria)
        except errors.DataStoreError as e:
            logger.error("Error loading map properties filters=%s: %s", criteria.as_dict(), e)
            raise BackendUnavailable("Failed to load properties. Please try again.")
        results = sort_properties(properties, sort_key)
        return response.Response({
            "count": len(results),
            "center": map_center(results),
            "markers": PropertyMarkerSerializer(results, many=True, context={"saved_ids": saved_ids}).data,
        })

    @decorators.action(detail=True, methods=["post"], url_path="toggle-save")
    def toggle_save(self, request, pk=None):
        store = self.get_store()
        property_id = int(pk)

        async def toggle():
            await store.get_by_id(property_id)
            tracker = await get_tracker(store)
            return await tracker.toggle_membership(property_id)

        try:
            ok, is_saved = async_to_sync(toggle)()
        except errors.NotFound:
            raise NotFound(detail="Property not found.")
        except errors.DataStoreError as e:
            logger.error("Error loading saved properties for toggle of %s: %s", pk, e)
            raise BackendUnavailable("Failed to update saved properties. Please try again.")
        if not ok:
            raise BackendUnavailable("Failed to update saved properties. Please try again.")

        logger.info("Saved state toggled property_id=%s saved=%s -> %s", property_id, not is_saved, is_saved)
        return response.Response(
            {
                "id": property_id,
                "is_saved": is_saved,
                "detail": "Property saved successfully" if is_saved else "Property removed from saved list",
            },
            status=status.HTTP_200_OK,
        )
