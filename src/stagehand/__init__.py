"""Stagehand: unattended, reboot-safe workstation provisioning."""

__version__ = "0.1.0"
