"""
sentimentpool/identity.py

Opaque caller identity.

The host authenticates callers; the engine only needs something it can
compare and use as a map key.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """An opaque, comparable caller identifier."""
    value: str

    def __post_init__(self):
        if not self.value:
            raise ValueError("Identity value must be non-empty")
        if ":" in self.value:
            # Used as a store key component
            raise ValueError(f"Identity may not contain ':': {self.value!r}")

    def __str__(self) -> str:
        return self.value
