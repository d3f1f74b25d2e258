"""NSX Manager API access."""
from .client import NsxConnection, NsxApiError, SESSION_CHECK_PATH

__all__ = ["NsxConnection", "NsxApiError", "SESSION_CHECK_PATH"]
