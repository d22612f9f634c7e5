import unittest
from urllib.parse import parse_qsl, unquote, urlsplit

from torrlink.config import GatewayConfig
from torrlink.urls import apply_auth, build_stream_url

INFO_HASH = "c9e15763f722f23e98a29decdfae341b98d53056"


class TestBuildStreamUrl(unittest.TestCase):
    def test_sets_playback_flags(self):
        url = build_stream_url(GatewayConfig(url="http://ts:8090"), link=INFO_HASH, index=3)
        self.assertEqual(
            url, f"http://ts:8090/stream?link={INFO_HASH}&index=3&play=1&save=true"
        )

    def test_basic_auth_splits_on_first_colon(self):
        config = GatewayConfig(url="http://ts:8090", auth="alice:p@ss:word")
        url = build_stream_url(config, link=INFO_HASH, index=0)
        parts = urlsplit(url)
        self.assertEqual(unquote(parts.username or ""), "alice")
        self.assertEqual(unquote(parts.password or ""), "p@ss:word")
        self.assertEqual(parts.hostname, "ts")
        self.assertEqual(parts.port, 8090)
        self.assertNotIn("apikey", parts.query)

    def test_api_key_is_last_query_param(self):
        config = GatewayConfig(url="http://ts:8090", auth="abc123")
        url = build_stream_url(config, link=INFO_HASH, index=1)
        parts = urlsplit(url)
        self.assertIsNone(parts.username)
        self.assertEqual(parse_qsl(parts.query)[-1], ("apikey", "abc123"))
        self.assertNotIn("@", parts.netloc)

    def test_is_deterministic(self):
        config = GatewayConfig(url="http://ts:8090/", auth="abc123")
        self.assertEqual(
            build_stream_url(config, link=INFO_HASH, index=2),
            build_stream_url(config, link=INFO_HASH, index=2),
        )

    def test_filename_path_segment(self):
        url = build_stream_url(
            GatewayConfig(url="http://ts:8090"),
            link=INFO_HASH,
            filename="My Movie (2020).mkv",
            play=False,
            save=False,
        )
        self.assertEqual(url, f"http://ts:8090/stream/My%20Movie%20%282020%29.mkv?link={INFO_HASH}")


class TestApplyAuth(unittest.TestCase):
    def test_blank_auth(self):
        self.assertEqual(apply_auth("http://ts/stream?link=x", "  "), "http://ts/stream?link=x")

    def test_none_auth(self):
        self.assertEqual(apply_auth("http://ts/stream", None), "http://ts/stream")
