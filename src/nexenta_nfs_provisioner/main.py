import argparse
import logging
import sys
from typing import List, Optional

import yaml

from .api_client import ManagementClient
from .config import ProvisionerConfig, load_config
from .exceptions import ConfigurationError, IgnoredError, ProvisionerError
from .models import Credentials, VolumeDescriptor, VolumeRequest
from .provisioner import VolumeProvisioner
from .session import Session

logger = logging.getLogger("Nexenta-Provisioner")


def build_provisioner(config: ProvisionerConfig) -> VolumeProvisioner:
    session = Session(
        config.base_url,
        Credentials(username=config.username, password=config.password),
    )
    client = ManagementClient(
        session,
        verify_ssl=config.verify_ssl,
        ca_bundle=config.ca_bundle,
        timeout=config.timeout,
        poll_interval=config.poll_interval,
        max_polls=config.max_polls,
    )
    return VolumeProvisioner(client, config.pool, config.identity, config.hostname)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nexenta-nfs-provisioner",
        description="Provision and delete NFS volumes on a NexentaStor appliance",
    )
    parser.add_argument("--config", help="YAML config file, overridden by environment")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    provision = commands.add_parser("provision", help="Create a volume")
    provision.add_argument("name")
    provision.add_argument("--capacity", type=int, help="Quota in bytes")
    provision.add_argument(
        "--access-mode", dest="access_modes", action="append", default=None
    )
    provision.add_argument("--reclaim-policy", default="Delete")

    delete = commands.add_parser("delete", help="Delete a volume from its PV manifest")
    delete.add_argument("manifest", help="PersistentVolume YAML written by 'provision'")

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    provisioner = build_provisioner(config)
    logger.info(f"Using appliance {config.base_url} pool {config.pool} as {config.identity}")

    if args.command == "provision":
        request = VolumeRequest(
            name=args.name,
            capacity=args.capacity,
            reclaim_policy=args.reclaim_policy,
            **({"access_modes": args.access_modes} if args.access_modes else {}),
        )
        descriptor = provisioner.provision(request)
        yaml.safe_dump(descriptor.to_persistent_volume(), sys.stdout, sort_keys=False)
        return 0

    try:
        with open(args.manifest) as f:
            manifest = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read manifest {args.manifest}: {e}") from e
    descriptor = VolumeDescriptor.from_persistent_volume(manifest)
    try:
        provisioner.delete(descriptor)
    except IgnoredError as e:
        logger.info(f"Skipping: {e}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        return run(args)
    except ProvisionerError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
