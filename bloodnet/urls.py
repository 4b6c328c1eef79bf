# bloodnet/urls.py
from django.urls import path
from . import views

app_name = "bloodnet"

urlpatterns = [
    # requests
    path("requests/", views.request_collection, name="requests"),
    path("requests/urgent/", views.requests_urgent, name="requests_urgent"),
    path("requests/<uuid:pk>/", views.request_detail, name="request_detail"),
    path("requests/<uuid:pk>/matches/", views.request_matches, name="request_matches"),
    path("requests/<uuid:pk>/fulfill/", views.request_fulfill, name="request_fulfill"),
    path("requests/<uuid:pk>/cancel/", views.request_cancel, name="request_cancel"),

    # inventory
    path("matches/", views.inventory_matches, name="inventory_matches"),
    path("bloodbanks/<uuid:pk>/alerts/", views.bank_alerts, name="bank_alerts"),
    path("bloodbanks/<uuid:pk>/inventory/", views.bank_inventory_adjust, name="bank_inventory_adjust"),
    path("bloodbanks/<uuid:pk>/summary/", views.bank_summary, name="bank_summary"),

    # facilities
    path("facilities/<uuid:pk>/requests/", views.facility_requests, name="facility_requests"),
]
