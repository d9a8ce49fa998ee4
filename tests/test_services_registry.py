import json
import os
import tempfile
import unittest
from unittest.mock import patch

import instacheck.services as services
from instacheck.core.declarative_probe import DeclarativeProbe

YAML_DESCRIPTOR = """\
schema_version: 1
service_key: demo
display_name: Demo Service
endpoint:
  url: https://demo.example/users/${username}
classification:
  found_path: user
"""


def json_descriptor(key, display_name):
    return json.dumps({
        "schema_version": 1,
        "service_key": key,
        "display_name": display_name,
        "endpoint": {"url": f"https://{key}.example/u/${{username}}"},
    })


class TestBuiltinServices(unittest.TestCase):
    def test_instagram_is_registered(self):
        self.assertIn("instagram", services.available_services())
        cfg = services.get_service_info("instagram")
        self.assertEqual(cfg["descriptor_file"], "instagram.json")
        self.assertEqual(cfg["recommended_concurrency"], 5)
        self.assertEqual(cfg["request_timeout"], 30)

    def test_flexible_name_resolution(self):
        self.assertEqual(services.resolve_service_key("instagram"), "instagram")
        self.assertEqual(services.resolve_service_key("Instagram"), "instagram")
        self.assertEqual(services.resolve_service_key(" INSTA-GRAM "), "instagram")
        self.assertIsNone(services.resolve_service_key("myspace"))
        self.assertIsNone(services.resolve_service_key(""))

    def test_create_probe(self):
        probe = services.create_probe("Instagram", timeout=3)
        self.addCleanup(probe.close)
        self.assertIsInstance(probe, DeclarativeProbe)
        self.assertEqual(probe.timeout, 3.0)
        self.assertEqual(probe.session.headers["x-ig-app-id"], "936619743392459")

    def test_unknown_service_rejected(self):
        with self.assertRaises(ValueError):
            services.create_probe("myspace")


class TestDescriptorScanning(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dir = self.tmp.name

    def write(self, name, content):
        with open(os.path.join(self.dir, name), "w", encoding="utf-8") as fh:
            fh.write(content)

    def test_json_preferred_over_yaml(self):
        self.write("demo.yaml", YAML_DESCRIPTOR)
        self.write("demo.json", json_descriptor("demo", "Demo JSON"))

        with self.assertLogs("instacheck.services", level="WARNING"):
            descriptors, sources, warnings = services.scan_descriptors([self.dir])

        self.assertEqual(descriptors["demo"].display_name, "Demo JSON")
        self.assertEqual(sources["demo"]["selected_file"], "demo.json")
        self.assertEqual(len(sources["demo"]["candidates"]), 2)
        self.assertTrue(any("demo" in w for w in warnings))

    def test_yaml_only_descriptor(self):
        self.write("demo.yml", YAML_DESCRIPTOR)
        descriptors, _sources, warnings = services.scan_descriptors([self.dir])
        self.assertEqual(descriptors["demo"].classification.found_path, "user")
        self.assertEqual(warnings, [])

    def test_broken_descriptor_is_skipped(self):
        self.write("broken.json", "{not json")
        self.write("other.json", json_descriptor("other", "Other"))
        with self.assertLogs("instacheck.services", level="WARNING"):
            descriptors, _sources, _warnings = services.scan_descriptors([self.dir])
        self.assertEqual(sorted(descriptors), ["other"])

    def test_extra_dirs_from_environment(self):
        self.write("extra.json", json_descriptor("extra", "Extra Service"))
        self.addCleanup(services.reload_descriptors)
        with patch.dict(os.environ, {"INSTACHECK_DESCRIPTOR_DIRS": self.dir}):
            services.reload_descriptors()
            self.assertIn("extra", services.available_services())
            self.assertIn("instagram", services.available_services())
            self.assertEqual(services.resolve_service_key("extra service"), "extra")
            self.assertEqual(services.get_descriptor_source("extra")["selected_path"],
                             os.path.join(self.dir, "extra.json"))


if __name__ == '__main__':
    unittest.main()
