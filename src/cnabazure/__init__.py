"""
cnab-azure - CNAB driver running bundle operations in Azure Container Instances
"""

__version__ = "0.1.0"

from .core import AzureDriver
from .errors import DriverError

__all__ = ["AzureDriver", "DriverError"]
