import unittest
from hashlib import sha1

from torrlink import magnet
from torrlink.errors import BadRequest


def new_info_hash(s: str) -> str:
    return sha1(s.encode()).hexdigest().upper()


class TestMakeMagnetLink(unittest.TestCase):
    def test_hash_round_trips_lowercase(self):
        for title in ["Oppenheimer 2023", "Fargo S01", "The Hobbit"]:
            info_hash = new_info_hash(title)
            link = magnet.make_magnet_link(info_hash, ["udp://tracker.example:1337/announce"])
            self.assertEqual(magnet.parse_magnet_link(link), info_hash.lower())

    def test_without_sources(self):
        info_hash = new_info_hash("no trackers")
        self.assertEqual(
            magnet.make_magnet_link(info_hash),
            f"magnet:?xt=urn:btih:{info_hash.lower()}",
        )

    def test_sources_are_encoded_in_order(self):
        info_hash = new_info_hash("trackers")
        link = magnet.make_magnet_link(
            info_hash, ["udp://a.example:80/announce", "http://b.example/announce?x=1"]
        )
        self.assertTrue(
            link.endswith(
                "&tr=udp%3A%2F%2Fa.example%3A80%2Fannounce"
                "&tr=http%3A%2F%2Fb.example%2Fannounce%3Fx%3D1"
            )
        )

    def test_rejects_bad_hash(self):
        with self.assertRaises(BadRequest):
            magnet.make_magnet_link("not-a-hash")


class TestParseMagnetLink(unittest.TestCase):
    def test_short_hash_is_rejected(self):
        self.assertIsNone(magnet.parse_magnet_link("magnet:?xt=urn:btih:abc123"))

    def test_non_magnet(self):
        self.assertIsNone(magnet.parse_magnet_link("https://example.tld/file.torrent"))

    def test_normalize(self):
        info_hash = new_info_hash("normalize")
        self.assertEqual(magnet.normalize_info_hash(f" {info_hash} "), info_hash.lower())
