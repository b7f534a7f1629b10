"""
Persistence Results
===================

Repositories return ``Provisioned(value)`` when their backing table exists and
``NotProvisioned(table)`` when the storage capability probe reported it
missing. Callers branch on the value instead of catching schema errors.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Provisioned(Generic[T]):
    """Successful repository result."""
    value: T


@dataclass(frozen=True)
class NotProvisioned:
    """The table backing this operation has not been migrated yet."""
    table: str

    @property
    def message(self) -> str:
        return f"Table '{self.table}' is not provisioned. Run the database migrations first."


Result = Union[Provisioned[T], NotProvisioned]


def is_provisioned(result: "Result") -> bool:
    return isinstance(result, Provisioned)
