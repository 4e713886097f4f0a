"""
Resource tracking for guaranteed teardown.
"""

import atexit
import logging
from typing import Callable, List, Optional

import click

from ..provision import terminate_instance
from ..tunnel import Tunnel
from .signals import signals_ignored

logger = logging.getLogger(__name__)


class ResourceTracker:
    """
    Records the instance and tunnels a session creates and releases them
    exactly once.

    Use as a context manager; ``close`` also runs from ``atexit`` in case the
    interpreter exits without unwinding the ``with`` block.
    """

    def __init__(self, ec2=None, echo: Callable[[str], None] = click.echo):
        self.ec2 = ec2
        self.echo = echo
        self.instance_id: Optional[str] = None
        self.tunnels: List[Tunnel] = []
        self.closed = False

    def track_instance(self, instance_id: str) -> None:
        self.instance_id = instance_id

    def track_tunnel(self, tunnel: Tunnel) -> None:
        self.tunnels.append(tunnel)

    def close(self) -> None:
        """
        Stop live tunnels, then terminate the instance.

        Ctrl-C and termination signals are ignored while this runs. Failures
        are logged and do not stop the remaining teardown, and the instance is
        terminated even if stopping a tunnel is interrupted. Once termination
        has been attempted, further calls are no-ops.
        """
        if self.closed:
            return

        with signals_ignored():
            if self.tunnels or self.instance_id:
                self.echo("🧹 Cleaning up...")
            try:
                self._stop_tunnels()
            finally:
                self._terminate_instance()
                self.closed = True

    def _stop_tunnels(self) -> None:
        for tunnel in self.tunnels:
            try:
                tunnel.stop()
            except Exception as e:
                logger.error(f"Failed to stop {tunnel.name} tunnel (pid {tunnel.pid}): {e}")

    def _terminate_instance(self) -> None:
        if not self.instance_id:
            logger.debug("No instance was created, nothing to terminate")
            return

        if self.ec2 is None:
            logger.error(f"No EC2 client available to terminate {self.instance_id}")
            return

        try:
            terminate_instance(self.ec2, self.instance_id)
        except Exception as e:
            logger.error(f"Failed to terminate instance {self.instance_id}: {e}")
            self.echo(f"⚠️  Could not terminate {self.instance_id}, remove it manually: {e}")
            return
        self.echo(f"🗑️  Terminated instance {self.instance_id}")

    def __enter__(self) -> "ResourceTracker":
        atexit.register(self.close)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.close()
        finally:
            # keep the atexit backstop if teardown never got as far as the instance
            if self.closed:
                atexit.unregister(self.close)
