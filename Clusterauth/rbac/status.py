from __future__ import annotations

from ..models import Cluster, SyncStatus
from .contracts import SyncOutcome


class SyncStatusStore:
    """Per-cluster record of the last reconciliation outcome."""

    def get(self, cluster_id: int) -> SyncStatus | None:
        return SyncStatus.objects.filter(cluster_id=cluster_id).first()

    def put(self, cluster: Cluster, outcome: SyncOutcome) -> SyncStatus:
        status, _ = SyncStatus.objects.update_or_create(
            cluster=cluster,
            defaults={
                "state": outcome.state.value,
                "synced": outcome.synced,
                "last_attempted_at": outcome.attempted_at,
                "last_succeeded_at": outcome.succeeded_at,
                "applied": list(outcome.applied),
                "errors": list(outcome.errors),
            },
        )
        return status
