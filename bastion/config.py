"""
Configuration loading for bastion.

The configuration file is a Jinja2 template rendered against the process
environment and then parsed as YAML. Values are looked up by dotted path.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "bastion.yml"

# Optional keys and the values used when the file omits them
DEFAULTS: Dict[str, Any] = {
    "instance.database_port": 5432,
    "instance.redis_port": 6379,
    "instance.type": "t3.micro",
    "instance.ssh_user": "ec2-user",
    "instance.address_timeout": 300,
    "instance.ssh_timeout": 300,
    "docker.workdir": "/app",
    "docker.loopback_host": "host.docker.internal",
}

_MISSING = object()


class Config:
    """Parsed configuration with dotted-path lookups."""

    def __init__(self, data: Dict[str, Any], path: Optional[Path] = None):
        self.data = data
        self.path = path

    def get(self, key: str, default: Any = None) -> str:
        """
        Look up a value by dotted path, e.g. ``instance.database_port``.

        Args:
            key: Dotted path into the configuration mapping
            default: Value to use when the key is absent. Falls back to the
                built-in default for optional keys.

        Returns:
            The value as a string

        Raises:
            ConfigError: If the key is absent and has no default
        """
        value = self._find(key)
        if value is _MISSING or value is None:
            if default is None:
                default = DEFAULTS.get(key)
            if default is None:
                where = f" in {self.path}" if self.path else ""
                raise ConfigError(f"Missing required configuration key '{key}'{where}")
            value = default
        if isinstance(value, (dict, list)):
            raise ConfigError(f"Configuration key '{key}' must be a scalar, got {type(value).__name__}")
        return str(value)

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Configuration key '{key}' must be an integer, got '{value}'")

    def _find(self, key: str) -> Any:
        node: Any = self.data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node


def render_template(text: str, context: Optional[Dict[str, Any]] = None) -> str:
    """
    Render configuration text as a Jinja2 template.

    The process environment is available as ``env`` unless the context
    overrides it. Undefined variables are errors.
    """
    ctx = {"env": dict(os.environ)}
    if context:
        ctx.update(context)
    environment = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
    try:
        return environment.from_string(text).render(**ctx)
    except TemplateError as e:
        raise ConfigError(f"Failed to render configuration template: {e}")


def load_config(path: Union[str, Path, None] = None, context: Optional[Dict[str, Any]] = None) -> Config:
    """
    Load, render and parse a configuration file.

    Args:
        path: Path to the configuration file (defaults to ./bastion.yml)
        context: Extra template variables

    Returns:
        Config instance

    Raises:
        ConfigError: If the file is missing, fails to render or is not a YAML mapping
    """
    config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        text = config_path.read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {config_path}: {e}")

    rendered = render_template(text, context)

    try:
        data = yaml.safe_load(rendered)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping at the top level")

    return Config(data, config_path)
