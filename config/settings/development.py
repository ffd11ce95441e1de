from .base import *  # noqa

DEBUG = True

# Use local memory cache in development to avoid requiring Redis.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Transfers are simulated unless a Wise token is provided.
if not WISE_API_TOKEN:  # noqa: F405
    PAYOUT_PROVIDER = "simulated"
