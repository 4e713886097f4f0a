"""
SSH local port forwarding through the bastion instance.
"""

import logging
import socket
import subprocess
import tempfile
import time
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .errors import TunnelError

logger = logging.getLogger(__name__)


@dataclass
class Tunnel:
    """A background ssh process forwarding a local port to a remote host."""
    name: str
    local_port: int
    remote_host: str
    remote_port: int
    process: subprocess.Popen

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Terminate the ssh process if it is still running.

        Returns:
            True if a signal was sent, False if the process had already exited
        """
        if not self.is_alive():
            return False

        self.process.terminate()
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Tunnel {self.name} (pid {self.pid}) ignored SIGTERM, killing")
            self.process.kill()
            self.process.wait()
        logger.info(f"Stopped {self.name} tunnel (pid {self.pid})")
        return True


def open_local_port(host: str = "127.0.0.1") -> int:
    """
    Ask the OS for a free local port.

    The port is released before returning, so another process could grab it
    before the tunnel binds it.
    """
    return open_local_ports(1, host)[0]


def open_local_ports(count: int, host: str = "127.0.0.1") -> List[int]:
    """Like open_local_port, but holds every bind until all are assigned so the ports differ."""
    with ExitStack() as stack:
        ports = []
        for _ in range(count):
            sock = stack.enter_context(socket.socket(socket.AF_INET, socket.SOCK_STREAM))
            sock.bind((host, 0))
            ports.append(sock.getsockname()[1])
        return ports


def ssh_command(
    local_port: int,
    remote_host: str,
    remote_port: int,
    bastion_ip: str,
    ssh_key: Union[str, Path],
    ssh_user: str = "ec2-user",
) -> List[str]:
    return [
        "ssh",
        "-N",
        "-i", str(ssh_key),
        "-L", f"{local_port}:{remote_host}:{remote_port}",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "ExitOnForwardFailure=yes",
        "-o", "ServerAliveInterval=60",
        "-o", "LogLevel=ERROR",
        f"{ssh_user}@{bastion_ip}",
    ]


def start_tunnel(
    name: str,
    local_port: int,
    remote_host: str,
    remote_port: int,
    bastion_ip: str,
    ssh_key: Union[str, Path],
    ssh_user: str = "ec2-user",
    startup_wait: float = 1.0,
) -> Tunnel:
    """
    Start a background ssh process forwarding ``local_port`` to
    ``remote_host:remote_port`` through the bastion.

    Args:
        name: Label for messages ("database", "redis")
        local_port: Local port to listen on
        remote_host: Host reachable from the bastion
        remote_port: Port on the remote host
        bastion_ip: Public IP of the bastion instance
        ssh_key: Private key for the bastion
        ssh_user: Login user on the bastion
        startup_wait: Seconds to wait before checking the process is still up

    Returns:
        Tunnel

    Raises:
        TunnelError: If ssh exits during startup
    """
    cmd = ssh_command(local_port, remote_host, remote_port, bastion_ip, ssh_key, ssh_user)
    logger.debug(f"Starting tunnel: {' '.join(cmd)}")

    # stderr is only read on early exit, so it must not be a pipe ssh can fill
    with tempfile.TemporaryFile() as stderr_file:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=stderr_file,
            start_new_session=True,
        )

        if startup_wait:
            time.sleep(startup_wait)
        if process.poll() is not None:
            stderr_file.seek(0)
            err = stderr_file.read().decode(errors="replace").strip()
            raise TunnelError(
                f"{name} tunnel to {remote_host}:{remote_port} exited with code {process.returncode}: {err}"
            )

    tunnel = Tunnel(name, local_port, remote_host, remote_port, process)
    logger.info(f"Started {name} tunnel (pid {tunnel.pid}) localhost:{local_port} -> {remote_host}:{remote_port}")
    return tunnel
