import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError

IDENTITY_ANNOTATION = "nexentaStorProvisionerIdentity"

QUANTITY_SUFFIXES = {
    "": 1,
    "Ki": 1024,
    "Mi": 1024 ** 2,
    "Gi": 1024 ** 3,
    "Ti": 1024 ** 4,
    "Pi": 1024 ** 5,
    "Ei": 1024 ** 6,
    "k": 1000,
    "M": 1000 ** 2,
    "G": 1000 ** 3,
    "T": 1000 ** 4,
    "P": 1000 ** 5,
    "E": 1000 ** 6,
}
QUANTITY_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)\s*$")


def parse_quantity(value: Union[int, str]) -> int:
    """Convert a Kubernetes storage quantity such as ``5Gi`` to bytes."""
    if isinstance(value, int):
        return value
    match = QUANTITY_RE.match(str(value))
    if not match or match.group(2) not in QUANTITY_SUFFIXES:
        raise ValueError(f"Invalid storage quantity: {value!r}")
    return int(Decimal(match.group(1)) * QUANTITY_SUFFIXES[match.group(2)])


class Credentials(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)


class FilesystemSpec(BaseModel):
    """Body of ``POST storage/filesystems``."""

    model_config = ConfigDict(populate_by_name=True)

    # pool/name, without a leading slash
    path: str = Field(min_length=1)
    quota_size: Optional[int] = Field(default=None, ge=0, alias="quotaSize")


class ExportSpec(BaseModel):
    """Body of ``POST nas/nfs``."""

    filesystem: str = Field(min_length=1)
    anon: str = "root"


class VolumeRequest(BaseModel):
    name: str = Field(min_length=1)
    # Bytes; None means no quota on the filesystem
    capacity: Optional[int] = Field(default=None, ge=0)
    access_modes: List[str] = Field(default_factory=lambda: ["ReadWriteMany"])
    reclaim_policy: str = "Delete"


class VolumeDescriptor(BaseModel):
    """A provisioned volume, as handed back to the controller.

    Frozen so the identity marker written at creation can't be changed later.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    identity: Optional[str] = None
    capacity: Optional[int] = None
    access_modes: List[str] = Field(default_factory=list)
    reclaim_policy: str = "Delete"
    server: str = Field(min_length=1)
    path: str = Field(min_length=1)

    def to_persistent_volume(self) -> Dict[str, Any]:
        """Render the descriptor as a Kubernetes PersistentVolume manifest."""
        annotations = {}
        if self.identity is not None:
            annotations[IDENTITY_ANNOTATION] = self.identity

        spec: Dict[str, Any] = {
            "accessModes": list(self.access_modes),
            "persistentVolumeReclaimPolicy": self.reclaim_policy,
            "nfs": {"server": self.server, "path": self.path, "readOnly": False},
        }
        if self.capacity is not None:
            spec["capacity"] = {"storage": str(self.capacity)}

        return {
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {"name": self.name, "annotations": annotations},
            "spec": spec,
        }

    @classmethod
    def from_persistent_volume(cls, manifest: Dict[str, Any]) -> "VolumeDescriptor":
        if not isinstance(manifest, dict):
            raise ConfigurationError("PersistentVolume manifest must be a mapping")
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        nfs = spec.get("nfs") or {}
        annotations = metadata.get("annotations") or {}
        name = metadata.get("name", "")

        capacity = (spec.get("capacity") or {}).get("storage")
        try:
            return cls(
                name=name,
                identity=annotations.get(IDENTITY_ANNOTATION),
                capacity=parse_quantity(capacity) if capacity is not None else None,
                access_modes=spec.get("accessModes") or [],
                reclaim_policy=spec.get("persistentVolumeReclaimPolicy", "Delete"),
                server=nfs.get("server", ""),
                path=nfs.get("path", ""),
            )
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Invalid PersistentVolume manifest {name!r}: {e}") from e


class LoginResponse(BaseModel):
    token: str = Field(min_length=1)


class ErrorResponse(BaseModel):
    message: str
    code: Optional[str] = None
