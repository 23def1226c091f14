from django.urls import path
from .views import (
    OrderAnalyticsView,
    OrderByCodeView,
    OrderHistoryView,
    OrdersCollectionView,
    OrderStatusView,
    RetrieveOrderView,
)
app_name = "orders"

urlpatterns = [
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("analytics/", OrderAnalyticsView.as_view(), name="orders-analytics"),
    path("history/", OrderHistoryView.as_view(), name="orders-history"),
    path("code/<str:code>/", OrderByCodeView.as_view(), name="orders-by-code"),
    path("<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("<uuid:oid>/status/", OrderStatusView.as_view(), name="orders-status"),
]
