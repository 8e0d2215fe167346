"""
Django settings for the cluster authorization service.

Runtime values come from environment variables so the same image can run
against any database, cache and cluster naming scheme.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-clusterauth-dev-only")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [host.strip() for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "Clusterauth.apps.ClusterauthConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "Project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "Project.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("CLUSTERAUTH_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# The per-cluster reconciliation lock lives here; use a shared backend
# (redis, memcached) when several processes serve requests.
CACHES = {
    "default": {
        "BACKEND": os.getenv("DJANGO_CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"),
        "LOCATION": os.getenv("DJANGO_CACHE_LOCATION", "clusterauth"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "Clusterauth": {
            "handlers": ["console"],
            "level": os.getenv("CLUSTERAUTH_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "clusterauth.startup": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

# Reconciliation engine
CLUSTERAUTH_OBJECT_PREFIX = os.getenv("CLUSTERAUTH_OBJECT_PREFIX", "clusterauth")
CLUSTERAUTH_PRINCIPAL_NAMESPACE = os.getenv(
    "CLUSTERAUTH_PRINCIPAL_NAMESPACE", f"{CLUSTERAUTH_OBJECT_PREFIX}-system"
)
CLUSTERAUTH_MANAGED_BY_LABEL = os.getenv("CLUSTERAUTH_MANAGED_BY_LABEL", CLUSTERAUTH_OBJECT_PREFIX)
CLUSTERAUTH_REQUEST_TIMEOUT_SECONDS = int(os.getenv("CLUSTERAUTH_REQUEST_TIMEOUT_SECONDS", "8"))
CLUSTERAUTH_LOCK_TIMEOUT_SECONDS = int(os.getenv("CLUSTERAUTH_LOCK_TIMEOUT_SECONDS", "600"))
CLUSTERAUTH_APPLY_WORKERS = int(os.getenv("CLUSTERAUTH_APPLY_WORKERS", "1"))
# Extra or replacement tiers, e.g.
# [{"type": "auditor", "resources": ["events"], "verbs": ["get", "list"]}]
CLUSTERAUTH_PERMISSION_TYPES = []
