from django.apps import apps
from django.core.management.base import BaseCommand

from Clusterauth.models import Cluster
from Clusterauth.rbac.exceptions import ReconciliationInProgress
from Clusterauth.rbac.reconciler import Reconciler


class Command(BaseCommand):
    help = "Reconcile cluster authorization objects with the stored cluster permissions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--cluster",
            type=int,
            action="append",
            dest="clusters",
            help="Cluster id to reconcile. Repeat for several; defaults to every cluster.",
        )

    def handle(self, *args, **options):
        reconciler = Reconciler(apps.get_app_config("Clusterauth").catalog)
        clusters = Cluster.objects.all()
        if options.get("clusters"):
            clusters = clusters.filter(pk__in=options["clusters"])

        for cluster in clusters:
            try:
                status = reconciler.reconcile(cluster.pk)
            except ReconciliationInProgress:
                self.stdout.write(self.style.WARNING(f"Skipped {cluster.name}: reconciliation already running."))
                continue
            if status.synced:
                self.stdout.write(
                    self.style.SUCCESS(f"Synced {cluster.name}. created={len(status.applied)}")
                )
            else:
                self.stdout.write(
                    self.style.WARNING(
                        f"Sync incomplete for {cluster.name}. state={status.state} "
                        f"created={len(status.applied)} errors={len(status.errors)}"
                    )
                )
