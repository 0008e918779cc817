"""
Nickname equivalence index.

Built from a (name, relationship, name) dataset where only "has_nickname"
rows count. Links are undirected and expanded by a single propagation pass:
two names that share a neighbour become linked to each other. Longer chains
are not followed.
"""

import csv
from collections import defaultdict
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Sequence

from config.logging import logger
from config.settings import settings
from processing.matching.errors import DatasetLoadError

NICKNAME_RELATIONSHIP = "has_nickname"


class NicknameIndex:
    """
    Read-only map from a lowercase given name to its linked names.

    Usage:
        index = NicknameIndex.from_csv("data/nicknames.csv")
        index.are_linked("Bob", "Robert")  # True
    """

    def __init__(self, links: Optional[dict[str, frozenset[str]]] = None):
        self._links: dict[str, frozenset[str]] = dict(links or {})

    @classmethod
    def empty(cls) -> "NicknameIndex":
        return cls()

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> "NicknameIndex":
        """Build the index from (name_a, relationship, name_b) rows."""
        adjacency: dict[str, set[str]] = defaultdict(set)

        for row in rows:
            if len(row) < 3:
                continue
            name_a, relationship, name_b = (
                (value or "").strip().lower() for value in row[:3]
            )
            if relationship != NICKNAME_RELATIONSHIP or not name_a or not name_b:
                continue
            if name_a == name_b:
                continue
            adjacency[name_a].add(name_b)
            adjacency[name_b].add(name_a)

        # One propagation pass, read from the unexpanded adjacency so the
        # result stays symmetric.
        links = {}
        for name, neighbours in adjacency.items():
            expanded = set(neighbours)
            for neighbour in neighbours:
                expanded |= adjacency[neighbour]
            expanded.discard(name)
            links[name] = frozenset(expanded)

        return cls(links)

    @classmethod
    def from_csv(cls, path) -> "NicknameIndex":
        """
        Load the index from a CSV file with a header row.

        A missing or unreadable dataset is logged and yields an empty index.
        """
        try:
            rows = _read_dataset(Path(path))
        except DatasetLoadError as e:
            logger.error(f"Nickname dataset unavailable, matching without nicknames: {e}")
            return cls.empty()

        index = cls.from_rows(rows)
        logger.info(f"Loaded nickname index with {len(index)} names from {path}")
        return index

    def are_linked(self, name_a: str, name_b: str) -> bool:
        """Check if two given names are the same name or linked nicknames."""
        a = (name_a or "").strip().lower()
        b = (name_b or "").strip().lower()
        if not a or not b:
            return False
        if a == b:
            return True
        return b in self._links.get(a, frozenset())

    def nicknames_for(self, name: str) -> list[str]:
        return sorted(self._links.get((name or "").strip().lower(), frozenset()))

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._links


def _read_dataset(path: Path) -> list[list[str]]:
    if not path.is_file():
        raise DatasetLoadError(f"nickname dataset not found: {path}")
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            next(reader, None)  # header
            return [row for row in reader if row]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise DatasetLoadError(f"could not read nickname dataset {path}: {e}") from e


@lru_cache(maxsize=1)
def load_default_index() -> NicknameIndex:
    """Process-wide index built from NICKNAME_DATASET_PATH."""
    return NicknameIndex.from_csv(settings.NICKNAME_DATASET_PATH)
