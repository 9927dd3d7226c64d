"""Tests for ManifestRewriter."""

from soundkeep.application.services.manifest_rewriter import ManifestRewriter

MANIFEST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:6
#EXTINF:6.000000,
seg_00000.ts
#EXTINF:4.500000,
seg_00001.ts
#EXT-X-ENDLIST
"""


class TestManifestRewriter:
    def test_rewrites_segment_lines(self) -> None:
        rewritten = ManifestRewriter("/api/hls").rewrite(MANIFEST, 42)

        assert "/api/hls/42/seg/seg_00000.ts" in rewritten
        assert "/api/hls/42/seg/seg_00001.ts" in rewritten
        assert "\nseg_00000.ts\n" not in rewritten

    def test_keeps_tags_untouched(self) -> None:
        rewritten = ManifestRewriter("/api/hls").rewrite(MANIFEST, 42)

        assert rewritten.startswith("#EXTM3U\n#EXT-X-VERSION:3\n")
        assert "#EXTINF:4.500000," in rewritten
        assert rewritten.endswith("#EXT-X-ENDLIST\n")

    def test_appends_quoted_token(self) -> None:
        rewritten = ManifestRewriter("/api/hls").rewrite(MANIFEST, 7, access_token="a b&c")

        assert "/api/hls/7/seg/seg_00000.ts?token=a%20b%26c" in rewritten

    def test_only_whole_lines_match(self) -> None:
        text = "#EXT-X-MAP:URI=seg_00000.ts\nprefix_seg_00001.ts\nseg_00002.ts.bak\n"

        assert ManifestRewriter().rewrite(text, 1) == text

    def test_trailing_slash_in_prefix(self) -> None:
        rewriter = ManifestRewriter("/media/hls/")

        assert rewriter.segment_url(3, "seg_00000.ts") == "/media/hls/3/seg/seg_00000.ts"
        assert rewriter.playlist_url(3) == "/media/hls/3/playlist"

    def test_rewrite_is_pure(self) -> None:
        rewriter = ManifestRewriter()

        assert rewriter.rewrite(MANIFEST, 1) == rewriter.rewrite(MANIFEST, 1)
