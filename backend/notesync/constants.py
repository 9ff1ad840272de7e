# ---------------------------------------------------------------------------
# NOTE: This module is imported pretty much **everywhere** so we avoid any
# heavyweight dependencies or side-effects here.
# ---------------------------------------------------------------------------

# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX = "/api"

# Router prefixes (relative to API_PREFIX)
NOTES_PREFIX = "/notes"
CATEGORIES_PREFIX = "/categories"
SYNC_PREFIX = "/sync"

# Public mount point for uploaded note images
UPLOADS_MOUNT = "/static/uploads"
