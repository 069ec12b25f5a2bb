from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse


@api_view(["GET"])
@permission_classes([AllowAny])
def home(request, format=None):
    """Entry point with links to every section of the API."""
    return Response({
        "properties": reverse("property-list", request=request, format=format),
        "featured": reverse("property-featured", request=request, format=format),
        "map": reverse("property-map-markers", request=request, format=format),
        "saved_properties": reverse("saved-property-list", request=request, format=format),
        "saved_searches": reverse("saved-search-list", request=request, format=format),
        "tasks": reverse("task-list", request=request, format=format),
        "schema": reverse("schema", request=request, format=format),
        "swagger_ui": reverse("swagger-ui", request=request, format=format),
        "redoc": reverse("redoc", request=request, format=format),
    })
