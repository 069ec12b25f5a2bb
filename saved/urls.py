from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import SavedPropertyViewSet, SavedSearchViewSet

router = DefaultRouter()
router.register(r"properties", SavedPropertyViewSet, basename="saved-property")
router.register(r"searches", SavedSearchViewSet, basename="saved-search")

urlpatterns = [
    path("", include(router.urls)),
]
