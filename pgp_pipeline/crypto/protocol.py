"""
KeyRing protocol definition.

This defines the interface the pipelines need for key lookup, allowing
keyring files, collections of them, or other stores (a key server client,
a database) to be swapped without changing the rest of the codebase.
"""

from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

import pgpy

KeyResolver = Callable[[int], pgpy.PGPKey | None]
"""Maps a key id to an unlocked private key, or None when it is not available."""


@runtime_checkable
class KeyRing(Protocol):
    """
    Read-only store of public and secret keys.

    Lookups accept anything ``key_id`` understands and return None on a
    miss; they never raise for unknown ids.
    """

    def list_public_keys(self) -> Iterable[pgpy.PGPKey]:
        """Enumerate the available public keys, subkeys included."""
        ...

    def list_secret_keys(self) -> Iterable[pgpy.PGPKey]:
        """Enumerate the available secret keys, subkeys included."""
        ...

    def get_public_key(self, identifier: object) -> pgpy.PGPKey | None:
        """Find a public key by id."""
        ...

    def get_secret_key(self, identifier: object) -> pgpy.PGPKey | None:
        """Find a secret key by id."""
        ...
