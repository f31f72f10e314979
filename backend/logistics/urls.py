from rest_framework.routers import DefaultRouter

from .views import BookingViewSet, ConflictViewSet, DispatchViewSet, ReservationViewSet, VehicleViewSet

router = DefaultRouter()
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'reservations', ReservationViewSet, basename='reservation')
router.register(r'conflicts', ConflictViewSet, basename='conflict')
router.register(r'dispatches', DispatchViewSet, basename='dispatch')
router.register(r'vehicles', VehicleViewSet, basename='vehicle')

urlpatterns = router.urls
