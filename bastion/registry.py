"""
Container registry access and role credentials.
"""

import base64
import logging
import subprocess
from dataclasses import dataclass
from typing import Dict, List

from .errors import CommandError, ResolutionError

logger = logging.getLogger(__name__)


@dataclass
class Credentials:
    """Temporary credentials from an assumed role. Never written to disk."""
    access_key_id: str
    secret_access_key: str
    session_token: str

    def as_env(self) -> Dict[str, str]:
        return {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "AWS_SESSION_TOKEN": self.session_token,
        }

    def __repr__(self) -> str:
        return f"Credentials(access_key_id={self.access_key_id!r}, secret_access_key='***', session_token='***')"


def _run(cmd: List[str], input_text: str = None) -> str:
    logger.debug(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, input=input_text, capture_output=True, text=True)
    if result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr)
    return result.stdout.strip()


def registry_host(account_id: str, region: str) -> str:
    return f"{account_id}.dkr.ecr.{region}.amazonaws.com"


def docker_login(ecr, account_id: str, region: str) -> str:
    """
    Log the local docker daemon into the account's ECR registry.

    Args:
        ecr: boto3 ECR client
        account_id: AWS account ID owning the registry
        region: Registry region

    Returns:
        Registry host name
    """
    response = ecr.get_authorization_token(registryIds=[account_id])
    token = response["authorizationData"][0]["authorizationToken"]
    # Token decodes to "AWS:<password>"
    username, password = base64.b64decode(token).decode().split(":", 1)

    registry = registry_host(account_id, region)
    _run(["docker", "login", "--username", username, "--password-stdin", registry], input_text=password)
    logger.info(f"Logged in to {registry}")
    return registry


def find_image_uri(ecr, image_name: str, tag: str = "latest") -> str:
    """
    Find the repository whose name contains ``image_name``.

    Returns:
        Image URI with ``tag`` appended

    Raises:
        ResolutionError: If no repository matches
    """
    paginator = ecr.get_paginator("describe_repositories")
    for page in paginator.paginate():
        for repo in page.get("repositories", []):
            if image_name in repo["repositoryName"]:
                return f"{repo['repositoryUri']}:{tag}"

    raise ResolutionError(f"No ECR repository matching '{image_name}' found")


def pull_image(uri: str) -> None:
    # Output is left on the terminal so the user sees pull progress
    cmd = ["docker", "pull", uri]
    logger.debug(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd)
    if result.returncode != 0:
        raise CommandError(cmd, result.returncode)


def role_arn(account_id: str, role: str) -> str:
    """Accept either a full role ARN or a bare role name."""
    if role.startswith("arn:"):
        return role
    return f"arn:aws:iam::{account_id}:role/{role}"


def assume_role(sts, arn: str, session_name: str) -> Credentials:
    """
    Assume ``arn`` and return its temporary credentials.

    Args:
        sts: boto3 STS client
        arn: Role ARN
        session_name: Role session name, visible in CloudTrail

    Returns:
        Credentials
    """
    response = sts.assume_role(RoleArn=arn, RoleSessionName=session_name)
    creds = response["Credentials"]
    logger.info(f"Assumed role {arn} (expires {creds.get('Expiration')})")
    return Credentials(
        access_key_id=creds["AccessKeyId"],
        secret_access_key=creds["SecretAccessKey"],
        session_token=creds["SessionToken"],
    )
