"""Rewrite HLS manifests so segment lines become client-fetchable URLs."""

import re
from urllib.parse import quote

# Only a line that is exactly one segment file name is rewritten. Tags, comments and any
# other URI lines pass through untouched.
_SEGMENT_LINE = re.compile(r"^(seg_[0-9]+\.ts)$", re.MULTILINE)


class ManifestRewriter:
    """Pure text transformation, re-run on every manifest fetch.

    The stored manifest references segments by bare file name. Clients need absolute paths
    (and possibly an access token), which depend on the request, so the rewritten text is
    never cached.
    """

    def __init__(self, public_prefix: str = "/api/hls") -> None:
        self._prefix = public_prefix.rstrip("/")

    def playlist_url(self, track_id: int) -> str:
        return f"{self._prefix}/{track_id}/playlist"

    def segment_url(
        self, track_id: int, segment: str, access_token: str | None = None
    ) -> str:
        url = f"{self._prefix}/{track_id}/seg/{segment}"
        if access_token:
            url += f"?token={quote(access_token, safe='')}"
        return url

    def rewrite(
        self, manifest: str, track_id: int, access_token: str | None = None
    ) -> str:
        """Replace every bare ``seg_<digits>.ts`` line with its URL."""
        return _SEGMENT_LINE.sub(
            lambda m: self.segment_url(track_id, m.group(1), access_token), manifest
        )
