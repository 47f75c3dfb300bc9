"""
Data models for the secret metadata store.
"""

from keeshepherd.core.errors import KeeShepherdError


class MetadataStoreError(KeeShepherdError):
    """Base exception for metadata store errors."""
    pass
