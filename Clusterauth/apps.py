from django.apps import AppConfig


class ClusterauthConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "Clusterauth"
    verbose_name = "Cluster authorization"

    def ready(self):
        from .rbac.catalog import load_permission_catalog

        # Built once per process; tiers are immutable afterwards.
        self.catalog = load_permission_catalog()
