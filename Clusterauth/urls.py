from django.urls import path

from . import views

app_name = "Clusterauth"

urlpatterns = [
    path("rbac/permission-types/", views.permission_types, name="permission_types"),
    path("clusters/<int:cluster_id>/rbac/sync/", views.sync_cluster_permissions, name="rbac_sync"),
    path("clusters/<int:cluster_id>/rbac/status/", views.cluster_sync_status, name="rbac_status"),
    path("clusters/<int:cluster_id>/rbac/inspect/", views.inspect_cluster_permissions, name="rbac_inspect"),
    path("clusters/<int:cluster_id>/permissions/", views.cluster_permissions, name="cluster_permissions"),
    path("permissions/<int:permission_id>/", views.permission_detail, name="permission_detail"),
]
