import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

# Environment variables override values from the config file
ENV_VARS = {
    "identity": "NODE_NAME",
    "hostname": "NEXENTA_HOSTNAME",
    "port": "NEXENTA_HOSTPORT",
    "pool": "NEXENTA_HOSTPOOL",
    "username": "NEXENTA_USERNAME",
    "password": "NEXENTA_PASSWORD",
    "verify_ssl": "NEXENTA_VERIFY_SSL",
    "ca_bundle": "NEXENTA_CA_BUNDLE",
}


class ProvisionerConfig(BaseModel):
    # Written onto provisioned volumes, typically the node name
    identity: str = Field(min_length=1)
    hostname: str = Field(min_length=1)
    port: int = Field(gt=0, lt=65536)
    pool: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)

    # Appliances usually ship self-signed certificates: either pin the CA
    # with ca_bundle or opt out of verification explicitly.
    verify_ssl: bool = True
    ca_bundle: Optional[str] = None

    timeout: float = Field(default=30.0, gt=0)
    poll_interval: float = Field(default=1.0, ge=0)
    max_polls: int = Field(default=60, gt=0)

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}:{self.port}/"


def load_config(path: Optional[str] = None) -> ProvisionerConfig:
    values: Dict[str, Any] = {}
    if path:
        if not os.path.exists(path):
            raise ConfigurationError(f"Config file not found: {path}")
        with open(path) as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

    for field, env_var in ENV_VARS.items():
        value = os.getenv(env_var)
        if value:
            values[field] = value

    try:
        return ProvisionerConfig(**values)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else ""
            env_var = ENV_VARS.get(field)
            problems.append(f"{field} ({env_var})" if env_var else field)
        raise ConfigurationError(f"Invalid configuration: {', '.join(problems)}") from e
