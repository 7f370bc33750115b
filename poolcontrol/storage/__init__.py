"""Local storage package"""

from .local_db import LocalDatabase

__all__ = ['LocalDatabase']
