from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from .views import home

urlpatterns = [
    # Home page with links
    path("", home, name="home"),

    # Apps
    path("api/properties/", include("listings.urls")),
    path("api/saved/", include("saved.urls")),
    path("api/tasks/", include("tasks.urls")),

    # OpenAPI schema + Swagger UI + Redoc
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
]
