"""
Reproducible GUID sequence.

GUIDs are name-based (RFC 4122 version 5): position ``n`` of a sequence
seeded with ``seed`` always maps to the same GUID, in every process.
"""

import threading
import uuid

DEFAULT_SEED = "plcsim"

# Namespace for all sequences; changing it changes every generated GUID.
_SEQUENCE_NAMESPACE = uuid.UUID("6f3a1c52-8d0e-4b7a-9c41-2e5d7f80a913")


class DeterministicGuid:
    """
    Counter-backed GUID generator.

    Distinct positions give distinct GUIDs; the same (seed, position) pair
    always gives the same GUID.
    """

    def __init__(self, seed: str = DEFAULT_SEED):
        self.seed = str(seed)
        self._namespace = uuid.uuid5(_SEQUENCE_NAMESPACE, self.seed)
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def position(self) -> int:
        """Number of GUIDs issued so far."""
        return self._counter

    def guid_at(self, position: int) -> uuid.UUID:
        """GUID for a sequence position, without advancing the sequence."""
        if position < 0:
            raise ValueError(f"Sequence position must not be negative, got {position}")
        return uuid.uuid5(self._namespace, str(position))

    def new_guid(self) -> uuid.UUID:
        """Issue the next GUID of the sequence."""
        with self._lock:
            position = self._counter
            self._counter += 1
        return self.guid_at(position)
