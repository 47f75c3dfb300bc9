"""
Service Layer - KeeShepherdService and ServicesContainer.
"""

from keeshepherd.services.container import ServicesContainer, create_services
from keeshepherd.services.shepherd_models import BulkStashResult, FileStashOutcome, ResolveResult
from keeshepherd.services.shepherd_service import ConfirmCallback, KeeShepherdService

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    # Services
    "KeeShepherdService",
    "ConfirmCallback",
    # Results
    "FileStashOutcome",
    "BulkStashResult",
    "ResolveResult",
]
