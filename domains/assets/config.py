"""Asset domain configuration - storage URL resolution."""

import os

# Default lifetime of signed URLs (1h)
DEFAULT_EXPIRES_IN = int(os.environ.get("STORAGE_SIGNED_URL_EXPIRES_IN", 60 * 60))

# Treat cached signed URLs as stale this long before they actually expire
CACHE_EXPIRY_MARGIN_SECONDS = int(os.environ.get("STORAGE_CACHE_MARGIN_SECONDS", 60))
CACHE_MAX_ENTRIES = int(os.environ.get("STORAGE_CACHE_MAX_ENTRIES", 500))

# Storage API request timeout (seconds)
STORAGE_TIMEOUT = float(os.environ.get("STORAGE_TIMEOUT", 10))

# URL path prefix of the Supabase Storage object API
STORAGE_OBJECT_PREFIX = "/storage/v1/object"
