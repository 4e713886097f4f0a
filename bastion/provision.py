"""
Bastion instance lifecycle: launch, readiness waits and termination.
"""

import logging
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional

from .polling import poll_until
from .tags import tag_specifications

logger = logging.getLogger(__name__)

SSH_PORT = 22


@dataclass
class Instance:
    """A launched bastion instance."""
    instance_id: str
    public_ip: Optional[str] = None


def create_instance(
    ec2,
    image_id: str,
    keypair: str,
    security_group_ids: List[str],
    subnet_id: str,
    instance_type: str = "t3.micro",
    tags: Optional[Dict[str, str]] = None,
) -> str:
    """
    Launch a single instance with a public address in the given subnet.

    Args:
        ec2: boto3 EC2 client
        image_id: AMI ID
        keypair: Name of the EC2 key pair
        security_group_ids: Security groups attached to the network interface
        subnet_id: Subnet to launch into
        instance_type: EC2 instance type
        tags: Tags applied to the instance and its volumes

    Returns:
        Instance ID
    """
    params = {
        "ImageId": image_id,
        "InstanceType": instance_type,
        "KeyName": keypair,
        "MinCount": 1,
        "MaxCount": 1,
        "NetworkInterfaces": [{
            "DeviceIndex": 0,
            "SubnetId": subnet_id,
            "Groups": security_group_ids,
            "AssociatePublicIpAddress": True,
            "DeleteOnTermination": True,
        }],
        "InstanceInitiatedShutdownBehavior": "terminate",
    }
    if tags:
        params["TagSpecifications"] = tag_specifications(tags)

    response = ec2.run_instances(**params)
    instance_id = response["Instances"][0]["InstanceId"]
    logger.info(f"Launched instance {instance_id} ({instance_type}, {image_id})")
    return instance_id


def get_public_ip(ec2, instance_id: str) -> Optional[str]:
    """Return the instance's public IP, or None while it has none yet."""
    response = ec2.describe_instances(InstanceIds=[instance_id])
    for reservation in response.get("Reservations", []):
        for instance in reservation.get("Instances", []):
            ip = instance.get("PublicIpAddress")
            if ip:
                return ip
    return None


def wait_for_address(ec2, instance_id: str, timeout: float = 300, interval: float = 5) -> str:
    """
    Wait until the instance reports a public IP address.

    Raises:
        ProvisioningTimeout: If no address appears within ``timeout`` seconds
    """
    return poll_until(
        lambda: get_public_ip(ec2, instance_id),
        timeout=timeout,
        interval=interval,
        description=f"public address of {instance_id}",
    )


def is_port_open(host: str, port: int, timeout: float = 2.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def wait_for_ssh(ip: str, port: int = SSH_PORT, timeout: float = 300, interval: float = 1) -> None:
    """
    Wait until the SSH port on ``ip`` accepts TCP connections.

    Raises:
        ProvisioningTimeout: If the port stays closed for ``timeout`` seconds
    """
    poll_until(
        lambda: is_port_open(ip, port),
        timeout=timeout,
        interval=interval,
        backoff=1.5,
        max_interval=10,
        description=f"SSH on {ip}:{port}",
    )


def terminate_instance(ec2, instance_id: str) -> None:
    ec2.terminate_instances(InstanceIds=[instance_id])
    logger.info(f"Terminated instance {instance_id}")
