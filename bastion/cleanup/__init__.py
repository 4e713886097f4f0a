"""
Teardown of the resources a bastion session creates.
"""

from .tracker import ResourceTracker
from .signals import install_signal_handlers, restore_signal_handlers, signals_ignored

__all__ = [
    "ResourceTracker",
    "install_signal_handlers",
    "restore_signal_handlers",
    "signals_ignored",
]
