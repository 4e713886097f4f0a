"""
SSH key file checks.
"""

import logging
import os
import stat
from pathlib import Path
from typing import Union

from .errors import KeyFileError

logger = logging.getLogger(__name__)

REQUIRED_MODE = 0o600


def ensure_key_permissions(path: Union[str, Path]) -> Path:
    """
    Make sure the SSH private key exists and is readable only by its owner.

    A key with looser permissions is tightened to 0600 rather than rejected,
    since ssh refuses to use it otherwise.

    Args:
        path: Path to the private key

    Returns:
        Expanded path to the key

    Raises:
        KeyFileError: If the file does not exist
    """
    key_path = Path(path).expanduser()
    if not key_path.is_file():
        raise KeyFileError(f"SSH key not found at: {key_path}")

    mode = stat.S_IMODE(key_path.stat().st_mode)
    if mode != REQUIRED_MODE:
        logger.warning(f"SSH key {key_path} has mode {mode:o}, changing to {REQUIRED_MODE:o}")
        os.chmod(key_path, REQUIRED_MODE)

    return key_path
