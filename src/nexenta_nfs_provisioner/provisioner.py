import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

from .api_client import ManagementClient
from .exceptions import ConfigurationError, IgnoredError, OwnershipError
from .models import ExportSpec, FilesystemSpec, VolumeDescriptor, VolumeRequest

logger = logging.getLogger(__name__)

PROVISIONER_NAME = "nexenta.com/nexentastor-nfs"

FILESYSTEMS_ENDPOINT = "storage/filesystems"
NFS_ENDPOINT = "nas/nfs"


class Provisioner(ABC):
    """Capability driven by an external volume controller."""

    @abstractmethod
    def provision(self, request: VolumeRequest) -> VolumeDescriptor:
        """Create the storage asset for ``request`` and describe it."""

    @abstractmethod
    def delete(self, descriptor: VolumeDescriptor) -> None:
        """Remove the storage asset created by ``provision``."""


class VolumeProvisioner(Provisioner):
    """Provisions NFS-exported filesystems on a NexentaStor appliance.

    ``identity`` is written onto every volume this instance creates (usually
    the node name) and only volumes carrying it are ever deleted.
    """

    def __init__(self, client: ManagementClient, pool: str, identity: str, server: str):
        self.client = client
        self.pool = pool
        self.identity = identity
        self.server = server

    def provision(self, request: VolumeRequest) -> VolumeDescriptor:
        path = f"{self.pool}/{request.name}"
        logger.info(f"Provisioning {request.name}: {path} (quota: {request.capacity})")

        # 1. Filesystem
        filesystem = FilesystemSpec(path=path, quota_size=request.capacity)
        self.client.post(FILESYSTEMS_ENDPOINT, filesystem).raise_for_error()

        # 2. NFS export; a failure here leaves the filesystem in place
        export = ExportSpec(filesystem=path, anon="root")
        self.client.post(NFS_ENDPOINT, export).raise_for_error()

        return VolumeDescriptor(
            name=request.name,
            identity=self.identity,
            capacity=request.capacity,
            access_modes=request.access_modes,
            reclaim_policy=request.reclaim_policy,
            server=self.server,
            path=f"/{path}",
        )

    def delete(self, descriptor: VolumeDescriptor) -> None:
        if descriptor.identity is None:
            raise OwnershipError(f"No identity marker present on {descriptor.name}")
        if descriptor.identity != self.identity:
            raise IgnoredError(
                f"Identity marker on {descriptor.name} ({descriptor.identity}) "
                f"does not match ours ({self.identity})"
            )

        encoded = self.encode_path(descriptor.path)
        if not encoded:
            raise ConfigurationError(f"No filesystem path on {descriptor.name}: {descriptor.path!r}")
        logger.info(f"Deprovisioning {descriptor.name}: {descriptor.path}")
        self.client.delete(f"{FILESYSTEMS_ENDPOINT}/{encoded}").raise_for_error()

    @staticmethod
    def encode_path(path: str) -> str:
        """Turn an export path into a single URL path segment."""
        return quote(path.lstrip("/"), safe="")
