"""API request/response schemas."""

from soundkeep.api.schemas.hls import HlsRequestResponse, HlsStatusResponse
from soundkeep.api.schemas.scan import ScanJobResponse, ScanRequestResponse

__all__ = [
    "HlsRequestResponse",
    "HlsStatusResponse",
    "ScanJobResponse",
    "ScanRequestResponse",
]
