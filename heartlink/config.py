#!/usr/bin/env python3
"""
Startup configuration for the bridge and the viewer.

Configuration is an optional YAML file; every key has a default, and command
line flags override whatever the file sets.

FORMAT (config.yaml):
    serial:
      port: /dev/ttyACM0
      baud_rate: 115200
    server:
      host: 0.0.0.0
      port: 8082
    client:
      url: ws://localhost:8082
      reconnect_interval_ms: 3000
      device_timeout_ms: 5000
"""

import copy
from pathlib import Path
from typing import Optional

import yaml

from heartlink import protocol


DEFAULT_CONFIG = {
    'serial': {
        'port': protocol.DEFAULT_SERIAL_PORT,
        'baud_rate': protocol.DEFAULT_BAUD_RATE,
    },
    'server': {
        'host': protocol.DEFAULT_WS_HOST,
        'port': protocol.DEFAULT_WS_PORT,
    },
    'client': {
        'url': protocol.DEFAULT_WS_URL,
        'reconnect_interval_ms': int(protocol.RECONNECT_INTERVAL_S * 1000),
        'device_timeout_ms': int(protocol.DEVICE_TIMEOUT_S * 1000),
    },
}


def load_config(path: Optional[str] = None) -> dict:
    """
    Load and validate configuration, merged over the defaults.

    Args:
        path: Path to a YAML file, or None for defaults only

    Returns:
        Validated configuration dictionary with every section present

    Raises:
        FileNotFoundError: If path is given but doesn't exist
        yaml.YAMLError: If YAML syntax is invalid
        ValueError: If configuration is invalid (via validate_config)
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        return config

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {path}\n"
            f"See config.yaml.example for a template."
        )

    with open(config_path, 'r') as f:
        loaded = yaml.safe_load(f)

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(loaded).__name__}")

    merge_config(config, loaded)
    validate_config(config)
    return config


def merge_config(base: dict, overrides: dict) -> dict:
    """Overlay known sections of overrides onto base (in place)."""
    for section, values in overrides.items():
        if section not in base:
            raise ValueError(
                f"Unknown configuration section: '{section}'\n"
                f"Valid sections: {', '.join(sorted(base))}"
            )
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Section '{section}' must be a mapping")
        for key, value in values.items():
            if key not in base[section]:
                raise ValueError(f"Unknown key '{section}.{key}'")
            base[section][key] = value
    return base


def validate_config(config: dict) -> None:
    """
    Validate a fully merged configuration.

    Validates:
    - serial.port: non-empty string
    - serial.baud_rate: standard rate
    - server.port: 1-65535
    - client.url: ws:// or wss:// URL
    - client.reconnect_interval_ms, client.device_timeout_ms: > 0

    Raises:
        ValueError: If any validation fails
    """
    serial_port = config['serial']['port']
    if not isinstance(serial_port, str) or not serial_port:
        raise ValueError(f"serial.port must be a device path, got {serial_port!r}")

    protocol.validate_baud_rate(config['serial']['baud_rate'])
    protocol.validate_port(config['server']['port'])

    url = config['client']['url']
    if not isinstance(url, str) or not url.startswith(("ws://", "wss://")):
        raise ValueError(f"client.url must start with ws:// or wss://, got {url!r}")

    for key in ('reconnect_interval_ms', 'device_timeout_ms'):
        protocol.validate_interval(f"client.{key}", config['client'][key])


def apply_overrides(config: dict, **overrides) -> dict:
    """Apply 'section.key' style overrides from the command line.

    None values are skipped so unset flags keep file/default values.

    Example:
        apply_overrides(config, **{'serial.port': args.port})
    """
    for dotted, value in overrides.items():
        if value is None:
            continue
        section, key = dotted.split('.', 1)
        config[section][key] = value
    validate_config(config)
    return config
