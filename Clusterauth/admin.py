from django.contrib import admin

from .models import Cluster, SyncStatus


@admin.register(Cluster)
class ClusterAdmin(admin.ModelAdmin):
    list_display = ("name", "api_server", "verify_tls", "created_at")
    search_fields = ("name",)
    exclude = ("bearer_token",)


@admin.register(SyncStatus)
class SyncStatusAdmin(admin.ModelAdmin):
    # Written by the reconciler only.
    list_display = ("cluster", "state", "synced", "last_attempted_at", "last_succeeded_at")
    list_filter = ("state", "synced")
    readonly_fields = (
        "cluster",
        "state",
        "synced",
        "last_attempted_at",
        "last_succeeded_at",
        "applied",
        "errors",
    )

    def has_add_permission(self, request):
        return False
