from __future__ import annotations

from dataclasses import dataclass

"""CellKey value type.

A cell is identified by the real index of its entity in the working copy and by
the year it belongs to. The canonical string form ``{entity_index}-{year}`` is the
join key between modification tracking, validation and rendering.
"""

__all__ = [
    "CellKey",
]


@dataclass(frozen=True, order=True)
class CellKey:
    """Structural key of one editable cell."""
    entity_index: int
    year: int

    def encode(self) -> str:
        return f"{self.entity_index}-{self.year}"

    @staticmethod
    def parse(text: str) -> CellKey:
        """Parse the canonical encoding back into a key.

        The year may be negative (``"0--2"``), so only the first separator splits.
        """
        head, sep, tail = text.partition("-")
        if not sep or not head or not tail:
            raise ValueError(f"invalid cell key: {text!r}")
        return CellKey(entity_index=int(head), year=int(tail))

    def __str__(self) -> str:
        return self.encode()
