"""
WSGI config for the cluster authorization service.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Project.settings')

application = get_wsgi_application()

# Log the reconciliation settings at startup so a wrong prefix or namespace is obvious.
try:
    import logging
    from django.conf import settings

    logger = logging.getLogger("clusterauth.startup")
    release = os.getenv("GIT_SHA") or "unknown"
    logger.info(
        "Clusterauth startup release=%s DEBUG=%s prefix=%s principal_namespace=%s apply_workers=%s",
        release,
        settings.DEBUG,
        getattr(settings, "CLUSTERAUTH_OBJECT_PREFIX", None),
        getattr(settings, "CLUSTERAUTH_PRINCIPAL_NAMESPACE", None),
        getattr(settings, "CLUSTERAUTH_APPLY_WORKERS", None),
    )
except Exception:
    # Never block startup on logging issues.
    pass
