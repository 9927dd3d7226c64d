"""Application services - request orchestration, artifact serving and scanning."""

from soundkeep.application.services.artifact_service import (
    ArtifactFile,
    ArtifactService,
    validate_file_name,
)
from soundkeep.application.services.library_scanner_service import (
    LibraryScannerService,
    ScanStats,
)
from soundkeep.application.services.manifest_rewriter import ManifestRewriter
from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.application.services.transcode_request_service import (
    TranscodeRequestService,
    manifest_ref_for,
)

__all__ = [
    "ArtifactFile",
    "ArtifactService",
    "LibraryScannerService",
    "ManifestRewriter",
    "ScanRequestService",
    "ScanStats",
    "TranscodeRequestService",
    "manifest_ref_for",
    "validate_file_name",
]
