from .base import JobSearchBase
from .jsearch import JSearchSource, QuotaExceededError, UpstreamError, build_query, posting_key

__all__ = [
    "JobSearchBase", "JSearchSource", "QuotaExceededError", "UpstreamError",
    "build_query", "posting_key",
]
