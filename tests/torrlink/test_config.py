import json
import unittest
from base64 import urlsafe_b64encode
from datetime import timedelta

from torrlink.config import (
    EmptyFilesPolicy,
    GatewayConfig,
    ResolverSettings,
    UserConfig,
    parse_config,
)
from torrlink.errors import BadRequest


def b64(data: dict) -> str:
    return urlsafe_b64encode(json.dumps(data).encode()).decode()


class TestGatewayConfig(unittest.TestCase):
    def test_from_token(self):
        config = GatewayConfig.from_token(
            json.dumps({"torrserverUrl": " http://ts:8090// ", "torrserverAuth": "u:p"})
        )
        self.assertEqual(config.url, "http://ts:8090")
        self.assertEqual(config.auth, "u:p")

    def test_blank_auth(self):
        config = GatewayConfig.from_token(
            json.dumps({"torrserverUrl": "http://ts:8090", "torrserverAuth": "   "})
        )
        self.assertIsNone(config.auth)

    def test_invalid_json(self):
        with self.assertRaises(BadRequest):
            GatewayConfig.from_token("{not json")

    def test_invalid_url(self):
        with self.assertRaises(BadRequest):
            GatewayConfig.from_token(json.dumps({"torrserverUrl": "ts:8090"}))


class TestParseConfig(unittest.TestCase):
    def test_empty_is_default(self):
        self.assertEqual(parse_config(""), UserConfig.defaults())
        self.assertIsNone(UserConfig.defaults().gateway())

    def test_parses_gateway(self):
        user_config = parse_config(
            b64({"torrserver_url": "https://ts.example/", "torrserver_auth": "key"})
        )
        gateway = user_config.gateway()
        assert gateway is not None
        self.assertEqual(gateway.url, "https://ts.example")
        self.assertEqual(gateway.auth, "key")

    def test_bad_url(self):
        with self.assertRaises(BadRequest):
            parse_config(b64({"torrserver_url": "ftp://ts.example"}))

    def test_garbage(self):
        with self.assertRaises(BadRequest):
            parse_config("!!!not-base64!!!")


class TestResolverSettings(unittest.TestCase):
    def test_from_env_defaults(self):
        settings = ResolverSettings.from_env()
        self.assertEqual(settings.not_ready_ttl, timedelta(seconds=30))
        self.assertGreater(settings.link_ttl, settings.not_ready_ttl)
        self.assertGreater(settings.lock_timeout_wait, settings.lock_timeout_no_wait)
        self.assertEqual(settings.empty_files, EmptyFilesPolicy.fail)
        self.assertTrue(settings.stream_while_downloading)

    def test_lock_outlives_a_full_run(self):
        settings = ResolverSettings()
        # add, settle and listing timeouts plus every poll round
        self.assertEqual(settings.lock_expiry(), 2 * 10.0 + 1.0 + 15 * (1.0 + 10.0))
        self.assertGreater(settings.lock_expiry(), settings.lock_timeout_wait)

    def test_explicit_lock_ttl(self):
        self.assertEqual(ResolverSettings(lock_ttl=90.0).lock_expiry(), 90.0)
