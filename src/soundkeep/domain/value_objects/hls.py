"""File layout of a cached HLS artifact directory."""

MANIFEST_NAME = "index.m3u8"

# ffmpeg -hls_segment_filename pattern; produces seg_00000.ts, seg_00001.ts, ...
SEGMENT_PATTERN = "seg_%05d.ts"

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(file_name: str) -> str:
    """Content type by extension; unknown files are served as opaque bytes."""
    for suffix, content_type in CONTENT_TYPES.items():
        if file_name.endswith(suffix):
            return content_type
    return DEFAULT_CONTENT_TYPE
