"""
Bastion - disposable SSH bastion and local container launcher.

This package provisions a short-lived EC2 instance, tunnels to the database
and cache services of an ECS task definition through it, and runs the
application image locally against those tunnels.
"""

__version__ = "0.1.0"
__author__ = "Bastion"
