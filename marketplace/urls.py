from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views


router = DefaultRouter()
router.register(r'harvests', views.HarvestViewSet, basename='harvests')
router.register(r'loans', views.LoanViewSet, basename='loans')
router.register(r'tokens', views.TokenViewSet, basename='tokens')
router.register(r'transactions', views.TransactionViewSet, basename='transactions')

urlpatterns = [
    path('', include(router.urls)),
]
