"""Dashboard data: listing client, payload schema, refresh controller."""

from .client import ListingClient, ListingError, ListingOfflineError
from .controller import (
    DashboardState,
    RefreshController,
    RefreshState,
    extract_error_message,
    is_stale,
)
from .models import ListingResponse, MalformedResponseError, classify_listing
