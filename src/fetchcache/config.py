from __future__ import annotations

import os
from typing import Protocol

from config import ConfigurationSet, config_from_dict, config_from_env, config_from_yaml


class AppConfig(Protocol):
    def __getitem__(self, key: str) -> object: ...


_DEFAULTS: dict[str, object] = {
    "cache": {
        "backend": "fs",
        "root": "~/.cache/fetchcache",
        "lock_timeout": -1,
        "default_ttl": 3600,
    },
    "s3": {
        "bucket": "",
        "region": "us-east-1",
    },
    "http": {
        "timeout": 60.0,
    },
}


def create_config(
    yaml_path: str = "fetchcache.yaml",
    env_prefix: str = "FETCHCACHE",
    defaults: dict[str, object] | None = None,
    *,
    overrides: dict[str, object] | None = None,
) -> ConfigurationSet:
    """Create a layered configuration.

    Priority (highest to lowest): explicit overrides > env vars > YAML file > defaults dict.
    Environment variables use ``__`` as the section separator, e.g.
    ``FETCHCACHE__S3__REGION=eu-west-1``. ``AWS_REGION``, when set, supplies
    ``s3.region`` below the prefixed variables and above the YAML file.

    Args:
        yaml_path: Path to the YAML config file. A missing file is ignored.
        env_prefix: Prefix for environment variables.
        defaults: Default configuration values.
        overrides: Values that win over every other layer (e.g. from CLI flags).
    """
    if defaults is None:
        defaults = _DEFAULTS

    layers = [
        config_from_env(env_prefix, separator="__", lowercase_keys=True),
        config_from_yaml(yaml_path, read_from_file=True, ignore_missing_paths=True),
        config_from_dict(defaults),
    ]
    # The standard AWS variable sits just below our own prefixed variables.
    aws_region = os.environ.get("AWS_REGION")
    if aws_region:
        layers.insert(1, config_from_dict({"s3": {"region": aws_region}}))
    if overrides:
        layers.insert(0, config_from_dict(overrides))

    return ConfigurationSet(*layers)
