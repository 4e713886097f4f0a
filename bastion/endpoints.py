"""
Discovery of the database and cache endpoints used by an ECS task definition.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple
from urllib.parse import urlsplit

from .errors import ResolutionError

logger = logging.getLogger(__name__)

DATABASE_URL = "DATABASE_URL"
REDIS_URL = "REDIS_URL"


@dataclass
class Endpoints:
    """Connection URLs from the task definition and the hosts they point at."""
    database_url: str
    redis_url: str
    database_host: str
    database_port: int
    redis_host: str
    redis_port: int


def latest_task_definition(ecs, family_name: str) -> str:
    """
    Find the most recently registered task definition whose ARN contains
    ``family_name``.

    Args:
        ecs: boto3 ECS client
        family_name: Substring of the task definition family

    Returns:
        Task definition ARN

    Raises:
        ResolutionError: If no task definition matches
    """
    matches = []
    paginator = ecs.get_paginator("list_task_definitions")
    for page in paginator.paginate(sort="ASC"):
        for arn in page.get("taskDefinitionArns", []):
            if family_name in arn:
                matches.append(arn)

    if not matches:
        raise ResolutionError(f"No task definition matching '{family_name}' found")

    # ASC order lists revisions oldest first
    latest = matches[-1]
    logger.debug(f"Latest task definition for {family_name}: {latest}")
    return latest


def extract_env(ecs, definition_arn: str) -> Dict[str, str]:
    """Read the first container's environment block as a dict."""
    response = ecs.describe_task_definition(taskDefinition=definition_arn)
    containers = response["taskDefinition"].get("containerDefinitions", [])
    if not containers:
        raise ResolutionError(f"Task definition {definition_arn} has no containers")

    return {item["name"]: item["value"] for item in containers[0].get("environment", [])}


def parse_host_port(url: str, default_port: int) -> Tuple[str, int]:
    """
    Extract host and port from a connection URL.

    Raises:
        ResolutionError: If the URL has no host
    """
    parts = urlsplit(url)
    if not parts.hostname:
        raise ResolutionError("Cannot find a host in connection URL")
    try:
        port = parts.port
    except ValueError:
        raise ResolutionError(f"Invalid port in connection URL for host {parts.hostname}")
    return parts.hostname, port or default_port


def discover_endpoints(ecs, family_name: str, database_port: int = 5432, redis_port: int = 6379) -> Endpoints:
    """
    Resolve the database and cache endpoints from the latest task definition.

    Args:
        ecs: boto3 ECS client
        family_name: Task definition family substring
        database_port: Port assumed when DATABASE_URL has none
        redis_port: Port assumed when REDIS_URL has none

    Returns:
        Endpoints

    Raises:
        ResolutionError: If either URL is missing from the environment
    """
    definition_arn = latest_task_definition(ecs, family_name)
    env = extract_env(ecs, definition_arn)

    missing = [key for key in (DATABASE_URL, REDIS_URL) if not env.get(key)]
    if missing:
        raise ResolutionError(f"Task definition {definition_arn} does not define {', '.join(missing)}")

    database_url = env[DATABASE_URL]
    redis_url = env[REDIS_URL]
    database_host, db_port = parse_host_port(database_url, database_port)
    redis_host, cache_port = parse_host_port(redis_url, redis_port)

    return Endpoints(
        database_url=database_url,
        redis_url=redis_url,
        database_host=database_host,
        database_port=db_port,
        redis_host=redis_host,
        redis_port=cache_port,
    )
