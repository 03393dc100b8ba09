# flatconf/provenance.py
"""
flatconf.provenance
-------------------

Optional provenance tracking for flat configuration keys.

When enabled via ``load(..., track_provenance=True)``, every key written into
the Store records the layer that wrote it. Later layers push the previous
entry into the key's history, so the whole override chain of a value can be
inspected ("why is db.port 5433?").

Source labels:
    ``"defaults"``                     a Defaults declaration
    ``"file:/abs/path/config.yaml"``   a CfgFile declaration
    ``"env:MYAPP_DB_PORT"``            an EnvVar declaration (variable name)

Thread-safety:
    Written only while `load()` runs; read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProvenanceEntry:
    """Records which layer set a flat key, and to what value."""

    key: str
    value: Any
    source: str

    def __str__(self) -> str:
        return f"{self.key} = {self.value!r}  <- {self.source}"


@dataclass
class ProvenanceStore:
    """Current and superseded provenance entries, per flat key."""

    _entries: dict[str, ProvenanceEntry] = field(default_factory=dict)
    _history: dict[str, list[ProvenanceEntry]] = field(default_factory=dict)

    def record(self, key: str, value: Any, source: str) -> None:
        """Record that `source` set `key`; a previous entry becomes history."""
        previous = self._entries.get(key)
        if previous is not None:
            self._history.setdefault(key, []).append(previous)
        self._entries[key] = ProvenanceEntry(key=key, value=value, source=source)

    def get(self, key: str) -> ProvenanceEntry | None:
        return self._entries.get(key)

    def history(self, key: str) -> list[ProvenanceEntry]:
        """All entries for `key`, oldest first, ending with the winning one."""
        chain = list(self._history.get(key, []))
        if key in self._entries:
            chain.append(self._entries[key])
        return chain

    def entries(self) -> dict[str, ProvenanceEntry]:
        return dict(self._entries)

    def sources_summary(self) -> dict[str, int]:
        """
        Count winning keys per source kind ("defaults", "file", "env").
        """
        counts: dict[str, int] = {}
        for entry in self._entries.values():
            kind = entry.source.split(":", 1)[0]
            counts[kind] = counts.get(kind, 0) + 1
        return counts
