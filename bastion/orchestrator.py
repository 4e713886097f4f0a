"""
Main orchestrator for a bastion session: provision, tunnel, launch, tear down.
"""

import logging
from typing import Callable, Optional, Sequence

import boto3
import click

from .cleanup import ResourceTracker, install_signal_handlers, restore_signal_handlers
from .config import Config
from .container import container_env, launch_container
from .endpoints import discover_endpoints
from .keys import ensure_key_permissions
from .provision import Instance, create_instance, wait_for_address, wait_for_ssh
from .registry import assume_role, docker_login, find_image_uri, pull_image, role_arn
from .resources import resolve_image_id, resolve_security_group_id, resolve_subnet_id, resolve_vpc_id
from .tags import base_tags, new_session_id
from .tunnel import open_local_ports, start_tunnel

logger = logging.getLogger(__name__)


def provision_bastion(ec2, config: Config, tracker: ResourceTracker, session_id: str,
                      echo: Callable[[str], None] = click.echo) -> Instance:
    """
    Resolve networking, launch the bastion and wait until SSH is reachable.

    The instance ID is handed to ``tracker`` as soon as it exists, so a failed
    wait still terminates it.
    """
    vpc_id = resolve_vpc_id(ec2, config.get("instance.vpc_name"))
    subnet_id = resolve_subnet_id(ec2, vpc_id, config.get("instance.public_subnet_name"))
    security_group_ids = [
        resolve_security_group_id(ec2, vpc_id, config.get("instance.sshable_security_group")),
        resolve_security_group_id(ec2, vpc_id, config.get("ecs.security_group")),
    ]
    image_id = resolve_image_id(ec2, config.get("instance.ami"))

    echo("🚀 Launching bastion instance...")
    instance_id = create_instance(
        ec2,
        image_id=image_id,
        keypair=config.get("instance.keypair_name"),
        security_group_ids=security_group_ids,
        subnet_id=subnet_id,
        instance_type=config.get("instance.type"),
        tags=base_tags(session_id),
    )
    tracker.track_instance(instance_id)
    echo(f"Instance: {instance_id}")

    echo("⏳ Waiting for public address...")
    ip = wait_for_address(ec2, instance_id, timeout=config.get_int("instance.address_timeout"))
    echo(f"Address: {ip}")

    echo("⏳ Waiting for SSH...")
    wait_for_ssh(ip, timeout=config.get_int("instance.ssh_timeout"))

    return Instance(instance_id=instance_id, public_ip=ip)


def run(
    config: Config,
    memory_gb: Optional[float] = None,
    args: Sequence[str] = (),
    session: Optional[boto3.Session] = None,
    echo: Callable[[str], None] = click.echo,
) -> int:
    """
    Run a full bastion session.

    Args:
        config: Loaded configuration
        memory_gb: Optional container memory limit in GB
        args: Arguments appended to the container entrypoint
        session: boto3 session (created from the configured region if omitted)
        echo: Progress output

    Returns:
        Exit code of the container
    """
    region = config.get("aws.region")
    account_id = config.get("aws.account_id")
    ssh_key = ensure_key_permissions(config.get("instance.ssh_key"))
    ssh_user = config.get("instance.ssh_user")

    session = session or boto3.Session(region_name=region)
    ec2 = session.client("ec2")
    ecs = session.client("ecs")
    ecr = session.client("ecr")
    sts = session.client("sts")

    session_id = new_session_id()
    logger.info(f"Starting session {session_id} in {region}")

    previous_handlers = install_signal_handlers()
    try:
        with ResourceTracker(ec2, echo=echo) as tracker:
            instance = provision_bastion(ec2, config, tracker, session_id, echo)

            echo("🔍 Reading task definition...")
            endpoints = discover_endpoints(
                ecs,
                config.get("ecs.name"),
                database_port=config.get_int("instance.database_port"),
                redis_port=config.get_int("instance.redis_port"),
            )

            echo("🔗 Opening tunnels...")
            database_port, redis_port = open_local_ports(2)
            database_tunnel = start_tunnel(
                "database", database_port, endpoints.database_host, endpoints.database_port,
                instance.public_ip, ssh_key, ssh_user,
            )
            tracker.track_tunnel(database_tunnel)
            redis_tunnel = start_tunnel(
                "redis", redis_port, endpoints.redis_host, endpoints.redis_port,
                instance.public_ip, ssh_key, ssh_user,
            )
            tracker.track_tunnel(redis_tunnel)
            echo(f"Database: localhost:{database_tunnel.local_port}")
            echo(f"Redis: localhost:{redis_tunnel.local_port}")

            echo("📦 Pulling image...")
            docker_login(ecr, account_id, region)
            image_uri = find_image_uri(ecr, config.get("docker.image_name"))
            pull_image(image_uri)

            echo("🔑 Assuming role...")
            credentials = assume_role(
                sts, role_arn(account_id, config.get("ecs.execution_role")), f"bastion-{session_id}"
            )

            env = container_env(
                endpoints, database_tunnel, redis_tunnel, credentials,
                local_host=config.get("docker.loopback_host"),
            )

            echo(f"🐳 Running {image_uri}")
            exit_code = launch_container(
                image_uri,
                env,
                container_workdir=config.get("docker.workdir"),
                memory_gb=memory_gb,
                args=args,
            )
            return exit_code
    finally:
        restore_signal_handlers(previous_handlers)
