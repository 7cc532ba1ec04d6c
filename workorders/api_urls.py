from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register("work-orders", views.WorkOrderViewSet, basename="work-order")
router.register("notifications", views.NotificationViewSet, basename="notification")
router.register("barcodes", views.PumpBarcodeViewSet, basename="barcode")

urlpatterns = router.urls
