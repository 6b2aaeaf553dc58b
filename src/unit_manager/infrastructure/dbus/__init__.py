"""
systemd D-Bus adapter
"""

from .systemd_client import PollingSubscription, SystemdBusClient, bus_path_escape, unit_path

__all__ = ["PollingSubscription", "SystemdBusClient", "bus_path_escape", "unit_path"]
