from django.urls import include, path

urlpatterns = [
    path("api/", include("ledger_core.urls")),
]
