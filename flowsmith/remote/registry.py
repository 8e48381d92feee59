# flowsmith/remote/registry.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from flowsmith.utils.io import PathLike, read_json

CATALOGUE_PATH = Path(__file__).with_name("node_types.json")


@dataclass(frozen=True)
class NodeTypeEntry:
    type: str
    name: str
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "name": self.name, "category": self.category}


class NodeTypeRegistry:
    """Static catalogue of known node types, used for lookups and fuzzy suggestions."""

    def __init__(self, entries: Iterable[NodeTypeEntry]):
        self._entries: List[NodeTypeEntry] = list(entries)

    @classmethod
    def from_file(cls, path: Optional[PathLike] = None) -> "NodeTypeRegistry":
        raw = read_json(path or CATALOGUE_PATH)
        return cls(NodeTypeEntry(type=e["type"], name=e["name"], category=e["category"]) for e in raw)

    def known_types(self) -> Set[str]:
        return {e.type for e in self._entries}

    def search(self, search: Optional[str] = None, category: Optional[str] = None, limit: int = 100) -> List[NodeTypeEntry]:
        """Case-insensitive filter: exact category, substring of display name or type."""
        results = self._entries
        if category:
            cat = category.lower()
            results = [e for e in results if e.category.lower() == cat]
        if search:
            needle = search.lower()
            results = [e for e in results if needle in e.name.lower() or needle in e.type.lower()]
        return results[:limit]

    def categories(self) -> List[str]:
        return sorted({e.category for e in self._entries})

    def exists(self, node_type: str) -> bool:
        return any(e.type == node_type for e in self._entries)

    def count(self) -> int:
        return len(self._entries)
