from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .api import ListingViewSet

router = SimpleRouter()
router.register("", ListingViewSet, basename="listing")

urlpatterns = [
    path("", include(router.urls)),
]
