"""
Repair Bay Server - State Models

The system registry, the status value object and the shared fault state
that the route handlers read and write.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

logger = logging.getLogger(__name__)


class InvalidSystemIndexError(Exception):
    """Raised when a requested system index cannot be applied."""

    pass


@dataclass(frozen=True)
class SystemStatus:
    """The currently damaged system, by name or by code."""

    damaged_system: str

    def to_dict(self) -> Dict[str, str]:
        return {"damaged_system": self.damaged_system}


class SystemRegistry:
    """Fixed, ordered system names with their parallel short codes."""

    def __init__(self, names: Sequence[str], codes: Sequence[str]):
        if len(names) != len(codes):
            raise ValueError(
                f"System names ({len(names)}) and codes ({len(codes)}) must have the same length"
            )
        if not names:
            raise ValueError("System registry cannot be empty")

        self._names: Tuple[str, ...] = tuple(names)
        self._codes: Tuple[str, ...] = tuple(codes)

    def __len__(self) -> int:
        return len(self._names)

    def contains_index(self, index: int) -> bool:
        return 0 <= index < len(self._names)

    def name_at(self, index: int) -> str:
        return self._names[index]

    def code_at(self, index: int) -> str:
        return self._codes[index]


class FaultState:
    """
    Holds the Current Fault Index for the whole process.

    All access goes through a lock so concurrent requests never observe a
    half-applied update.
    """

    def __init__(self, registry: SystemRegistry, initial_index: int = 3):
        if not registry.contains_index(initial_index):
            raise InvalidSystemIndexError(
                f"Initial index {initial_index} is outside the registry (size {len(registry)})"
            )
        self.registry = registry
        self._index = initial_index
        self._lock = threading.Lock()

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    def set_index(self, index: int) -> None:
        """
        Select which system is reported as damaged.

        Args:
            index: Position in the system registry

        Raises:
            InvalidSystemIndexError: If the index is outside the registry
        """
        if not self.registry.contains_index(index):
            raise InvalidSystemIndexError("ID doesn't exist")

        with self._lock:
            previous, self._index = self._index, index

        logger.info(f"Fault index changed: {previous} -> {index} ({self.registry.name_at(index)})")

    def damaged_system_name(self) -> SystemStatus:
        with self._lock:
            return SystemStatus(damaged_system=self.registry.name_at(self._index))

    def damaged_system_code(self) -> SystemStatus:
        with self._lock:
            return SystemStatus(damaged_system=self.registry.code_at(self._index))
