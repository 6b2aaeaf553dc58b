"""
Domain Ports

Port interfaces defining contracts between layers.
All dependencies on external systems are abstracted through ports.
"""

from .bus_port import IChangeSubscription, IControlBusPort

__all__ = [
    "IChangeSubscription",
    "IControlBusPort",
]
