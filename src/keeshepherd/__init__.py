"""
KeeShepherd - keep secrets out of plaintext source files.

Tracks secrets placed in files by salted fingerprint and position, masks
them, and stashes/unstashes them as symbolic anchors.
"""

__version__ = "0.1.0"
