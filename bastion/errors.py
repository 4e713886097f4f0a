"""
Exception types raised by the bastion pipeline.
"""

from typing import List, Optional


class BastionError(Exception):
    """Base class for all errors surfaced by bastion."""


class ConfigError(BastionError):
    """Configuration file is missing, malformed or lacks a required key."""


class KeyFileError(BastionError):
    """SSH private key file is missing."""


class ResolutionError(BastionError):
    """A name lookup against AWS returned no match."""


class ProvisioningTimeout(BastionError):
    """A readiness wait did not complete before its deadline."""

    def __init__(self, description: str, timeout: float):
        self.description = description
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for {description}")


class TunnelError(BastionError):
    """An SSH tunnel process failed to start."""


class CommandError(BastionError):
    """A local command (docker, ssh) exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int, stderr: Optional[str] = None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed ({returncode}): {' '.join(command)}"
        if stderr:
            message += f"\n{stderr.strip()}"
        super().__init__(message)
