"""
Lookups of existing networking objects (VPC, subnet, security groups) and
machine images by name.
"""

import logging
from typing import Any, Dict, List

from .errors import ResolutionError

logger = logging.getLogger(__name__)


def _first(items: List[Dict[str, Any]], key: str, what: str) -> str:
    if not items:
        raise ResolutionError(f"No {what} found")
    if len(items) > 1:
        logger.warning(f"Multiple matches for {what}, using {items[0][key]}")
    return items[0][key]


def resolve_vpc_id(ec2, name: str) -> str:
    """
    Resolve a VPC ID from its Name tag.

    Args:
        ec2: boto3 EC2 client
        name: Value of the VPC's Name tag

    Returns:
        VPC ID

    Raises:
        ResolutionError: If no VPC carries that name
    """
    response = ec2.describe_vpcs(Filters=[{"Name": "tag:Name", "Values": [name]}])
    vpc_id = _first(response.get("Vpcs", []), "VpcId", f"VPC named '{name}'")
    logger.debug(f"Resolved VPC {name} -> {vpc_id}")
    return vpc_id


def resolve_subnet_id(ec2, vpc_id: str, name: str) -> str:
    """
    Resolve a subnet ID from its VPC and Name tag.

    Raises:
        ResolutionError: If no subnet in the VPC carries that name
    """
    response = ec2.describe_subnets(Filters=[
        {"Name": "vpc-id", "Values": [vpc_id]},
        {"Name": "tag:Name", "Values": [name]},
    ])
    subnet_id = _first(response.get("Subnets", []), "SubnetId", f"subnet named '{name}' in {vpc_id}")
    logger.debug(f"Resolved subnet {name} -> {subnet_id}")
    return subnet_id


def resolve_security_group_id(ec2, vpc_id: str, name: str) -> str:
    """
    Resolve a security group ID from its VPC and group name.

    Raises:
        ResolutionError: If no group in the VPC has that name
    """
    response = ec2.describe_security_groups(Filters=[
        {"Name": "vpc-id", "Values": [vpc_id]},
        {"Name": "group-name", "Values": [name]},
    ])
    group_id = _first(response.get("SecurityGroups", []), "GroupId", f"security group '{name}' in {vpc_id}")
    logger.debug(f"Resolved security group {name} -> {group_id}")
    return group_id


def resolve_image_id(ec2, ami: str) -> str:
    """
    Resolve a machine image. IDs (``ami-...``) are returned unchanged; anything
    else is treated as an image name and the newest match wins.
    """
    if ami.startswith("ami-"):
        return ami

    response = ec2.describe_images(Filters=[{"Name": "name", "Values": [ami]}])
    images = response.get("Images", [])
    if not images:
        raise ResolutionError(f"No machine image named '{ami}' found")

    images_sorted = sorted(images, key=lambda x: x.get("CreationDate", ""), reverse=True)
    image_id = images_sorted[0]["ImageId"]
    logger.debug(f"Resolved image {ami} -> {image_id}")
    return image_id
