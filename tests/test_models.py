import unittest

from pydantic import ValidationError

from nexenta_nfs_provisioner.exceptions import ConfigurationError
from nexenta_nfs_provisioner.models import (
    IDENTITY_ANNOTATION,
    Credentials,
    FilesystemSpec,
    VolumeDescriptor,
    VolumeRequest,
    parse_quantity,
)


class TestModels(unittest.TestCase):
    def test_persistent_volume_manifest(self):
        descriptor = VolumeDescriptor(
            name="pvc-1",
            identity="node-1",
            capacity=1024,
            access_modes=["ReadWriteMany"],
            reclaim_policy="Delete",
            server="nexenta.local",
            path="/tank/pvc-1",
        )

        manifest = descriptor.to_persistent_volume()

        self.assertEqual(manifest["metadata"]["annotations"], {IDENTITY_ANNOTATION: "node-1"})
        self.assertEqual(
            manifest["spec"]["nfs"],
            {"server": "nexenta.local", "path": "/tank/pvc-1", "readOnly": False},
        )
        self.assertEqual(manifest["spec"]["capacity"], {"storage": "1024"})
        self.assertEqual(VolumeDescriptor.from_persistent_volume(manifest), descriptor)

    def test_manifest_without_annotation(self):
        descriptor = VolumeDescriptor.from_persistent_volume(
            {
                "metadata": {"name": "pvc-9"},
                "spec": {"nfs": {"server": "other", "path": "/tank/pvc-9"}},
            }
        )

        self.assertIsNone(descriptor.identity)
        self.assertIsNone(descriptor.capacity)
        self.assertEqual(descriptor.path, "/tank/pvc-9")

    def test_validation(self):
        with self.assertRaises(ValidationError):
            VolumeRequest(name="pvc-1", capacity=-1)
        with self.assertRaises(ValidationError):
            FilesystemSpec(path="")
        with self.assertRaises(ValidationError):
            Credentials(username="admin", password="")

    def test_credentials_hide_password(self):
        self.assertNotIn("secret", repr(Credentials(username="admin", password="secret")))

    def test_manifest_with_quantity_capacity(self):
        manifest = {
            "metadata": {"name": "pvc-1", "annotations": {IDENTITY_ANNOTATION: "node-1"}},
            "spec": {
                "capacity": {"storage": "5Gi"},
                "accessModes": ["ReadWriteOnce"],
                "nfs": {"server": "nexenta.local", "path": "/tank/pvc-1"},
            },
        }

        descriptor = VolumeDescriptor.from_persistent_volume(manifest)

        self.assertEqual(descriptor.capacity, 5 * 1024 ** 3)
        self.assertEqual(
            VolumeDescriptor.from_persistent_volume(descriptor.to_persistent_volume()),
            descriptor,
        )

    def test_manifest_without_nfs_source(self):
        with self.assertRaises(ConfigurationError):
            VolumeDescriptor.from_persistent_volume(
                {
                    "metadata": {"name": "pvc-1", "annotations": {IDENTITY_ANNOTATION: "node-1"}},
                    "spec": {},
                }
            )

    def test_manifest_with_bad_capacity(self):
        with self.assertRaises(ConfigurationError):
            VolumeDescriptor.from_persistent_volume(
                {
                    "metadata": {"name": "pvc-1"},
                    "spec": {
                        "capacity": {"storage": "lots"},
                        "nfs": {"server": "nexenta.local", "path": "/tank/pvc-1"},
                    },
                }
            )

    def test_parse_quantity(self):
        self.assertEqual(parse_quantity("5Gi"), 5 * 1024 ** 3)
        self.assertEqual(parse_quantity("1.5Ki"), 1536)
        self.assertEqual(parse_quantity("10G"), 10 * 1000 ** 3)
        self.assertEqual(parse_quantity("2048"), 2048)
        self.assertEqual(parse_quantity(512), 512)
        with self.assertRaises(ValueError):
            parse_quantity("5Xi")
