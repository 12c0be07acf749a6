from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import DashboardViewSet, InquiryViewSet

router = SimpleRouter()
router.register(r'inquiries', InquiryViewSet, basename='inquiry')
router.register(r'dashboard', DashboardViewSet, basename='dashboard')

urlpatterns = [
    path('', include(router.urls)),
]
