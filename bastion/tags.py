"""
Session naming and tagging for the bastion instance.
"""

import random
import string
from datetime import datetime, timezone
from typing import Dict, List, Optional


def new_session_id() -> str:
    """Session ID of the form ``b-YYYYMMDD-hhmmss-xxxx``, used in instance names and role sessions."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return datetime.now().strftime("b-%Y%m%d-%H%M%S-") + suffix


def base_tags(session_id: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Generate base tags for a bastion session.

    Args:
        session_id: Session ID
        extra: Additional tags to include

    Returns:
        Dictionary of tags to apply to the instance
    """
    tags = {
        "Name": f"bastion-{session_id}",
        "project": "bastion",
        "session_id": session_id,
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }

    if extra:
        tags.update(extra)

    return tags


def tag_specifications(tags: Dict[str, str], resource_types: tuple = ("instance", "volume")) -> List[Dict]:
    """Convert a tag dict into the TagSpecifications shape run_instances expects."""
    tag_list = [{"Key": k, "Value": v} for k, v in tags.items()]
    return [{"ResourceType": rt, "Tags": tag_list} for rt in resource_types]
