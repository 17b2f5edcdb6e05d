"""
Configuration loading and validation.

The configuration is a JSON file found through CONFIG_PATHS, for example:

    {
        "udp": {"bind": "0.0.0.0"},
        "http": {"bind": "0.0.0.0", "port": 8080},
        "devices": [{"name": "Primary", "address": "10.1.10.20", "port": 10023}],
        "timeout": 5
    }
"""
import ipaddress
import json
import logging
import os
import platform
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

logger = logging.getLogger('x32-reflector')

CONFIG_ENV_VAR = "X32_REFLECTOR_CONFIG"
DEFAULT_HTTP_PORT = 8080
DEFAULT_KEEPALIVE_INTERVAL = 9


def default_config_paths():
    """Candidate configuration files in order of preference"""
    paths = []
    if os.getenv(CONFIG_ENV_VAR):
        paths.append(Path(os.getenv(CONFIG_ENV_VAR)))
    if platform.system() == 'Linux':
        paths.append(Path('/etc/ents/x32-reflector.json'))
        paths.append(Path.home() / '.x32-reflector.config.json')
    paths.append(Path.cwd() / 'config' / 'config.json')
    return paths


class DeviceConfig(BaseModel):
    name: str = Field(..., pattern=r'^[A-Za-z0-9_-]+$')
    address: str = Field(..., validation_alias=AliasChoices('address', 'ip'))
    port: int = Field(..., ge=1, le=65535)


class UdpConfig(BaseModel):
    bind: str = "0.0.0.0"

    @field_validator('bind')
    @classmethod
    def bind_must_be_ipv4(cls, value):
        try:
            ipaddress.IPv4Address(value)
        except ValueError:
            raise ValueError(f"invalid bind address {value!r}")
        return value


class HttpConfig(BaseModel):
    bind: str = "0.0.0.0"
    port: int = Field(DEFAULT_HTTP_PORT, ge=1, le=65535)


class Configuration(BaseModel):
    udp: UdpConfig = Field(default_factory=UdpConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    devices: List[DeviceConfig] = Field(..., validation_alias=AliasChoices('devices', 'x32'))
    timeout: float = Field(..., gt=0, description="Subscriber timeout in minutes")
    keepalive_interval: float = Field(DEFAULT_KEEPALIVE_INTERVAL, gt=0)
    site_root: str = Field("/", validation_alias=AliasChoices('site_root', 'siteRoot'))

    @field_validator('devices', mode='before')
    @classmethod
    def single_device_as_list(cls, value):
        if isinstance(value, dict):
            return [value]
        return value

    @field_validator('site_root')
    @classmethod
    def site_root_must_end_in_slash(cls, value):
        if not value.endswith('/'):
            raise ValueError("Path must end in a /")
        return value

    @model_validator(mode='after')
    def device_names_unique(self):
        names = [device.name for device in self.devices]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate device names: {', '.join(duplicates)}")
        return self

    @property
    def ttl_seconds(self):
        return self.timeout * 60


def parse_configuration(content):
    """Validate an already-decoded configuration mapping"""
    try:
        return Configuration.model_validate(content)
    except ValidationError as e:
        reasons = ', '.join(
            f"{error['msg']} (@ {'.'.join(str(part) for part in error['loc'])})"
            for error in e.errors()
        )
        raise ConfigurationError(f"Configuration is not valid: {reasons}") from e


def load_configuration(paths: Optional[List[Path]] = None) -> Configuration:
    """
    Load the first valid configuration file from ``paths``.

    Raises:
        ConfigurationError: if no candidate file holds a valid configuration
    """
    load_dotenv()
    if paths is None:
        paths = default_config_paths()

    for file in paths:
        logger.info(f"Trying to load config from path {file}")

        try:
            content = Path(file).read_text(encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not load configuration file {file} due to an error: {e}")
            continue

        try:
            content = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to load the JSON data at path {file} due to error: {e}")
            continue

        try:
            config = parse_configuration(content)
        except ConfigurationError as e:
            logger.warning(f"Content in {file} is not valid: {e}")
            continue

        logger.info(f"Config loaded from {file}")
        return config

    raise ConfigurationError(f"No valid configuration found, scanned: {', '.join(str(p) for p in paths)}")
