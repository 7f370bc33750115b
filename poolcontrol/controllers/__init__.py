"""Hardware controllers"""

from .hardware import PoolHardware
from .network import NetworkMonitor

__all__ = ['PoolHardware', 'NetworkMonitor']
