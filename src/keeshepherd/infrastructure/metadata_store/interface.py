"""Abstract interface for secret metadata stores."""

from abc import ABC, abstractmethod
from typing import List, Optional

from keeshepherd.core.models import Secret


class SecretStoreInterface(ABC):
    """
    Abstract interface for secret metadata stores.

    A store keeps one record per (machine, file, name). Regular secrets are
    scoped by the machine the store was opened for; secrets that live in
    the shortcuts scope are addressed with ``machine_name=SHORTCUTS_SCOPE``.
    """

    @abstractmethod
    def get_machine_names(self) -> List[str]:
        """Return the machine names that have secrets recorded."""
        pass

    @abstractmethod
    def get_folders(self, machine_name: str) -> List[str]:
        """Return the distinct folders holding tracked files for a machine."""
        pass

    @abstractmethod
    def list_secrets(
        self, path: str, exact_match: bool, machine_name: Optional[str] = None
    ) -> List[Secret]:
        """
        List secrets by file path.

        Args:
            path: File path, or a folder prefix when ``exact_match`` is False
            exact_match: Compare the whole path instead of a prefix
            machine_name: Optional scope; defaults to the store's own machine

        Returns:
            Matching secrets, ordered by file path and name
        """
        pass

    @abstractmethod
    def get_all_secrets(self) -> List[Secret]:
        """Return every record in the store."""
        pass

    @abstractmethod
    def add_secret(self, secret: Secret) -> None:
        """
        Add or update a secret.

        Raises:
            SecretTooShortError: If the secret is shorter than the minimum length
            SecretNameConflictError: If the name is taken by a different hash
        """
        pass

    @abstractmethod
    def remove_secrets(
        self, file_path: str, names: List[str], machine_name: Optional[str] = None
    ) -> int:
        """Remove named secrets of one file. Returns count removed."""
        pass

    @abstractmethod
    def remove_all_secrets(self, machine_name: Optional[str] = None) -> int:
        """Remove every secret of a machine. Returns count removed."""
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> List[Secret]:
        """Return every record with the given name, across all files."""
        pass

    @abstractmethod
    def update_hash_and_length(self, old_hash: str, new_hash: str, new_length: int) -> int:
        """Rewrite every record carrying ``old_hash``. Returns count updated."""
        pass
