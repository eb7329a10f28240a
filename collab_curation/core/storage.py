"""JSON-file mirror of the in-progress collaboration selection."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .identifiers import IdentifierDecodeError, decode_token, encode_token
from .models import SelectionSet

log = logging.getLogger("curation.mirror")

COLLABS_KEY = "temp_selected_collabs"
CITIES_KEY = "selected_cities"


class LocalMirror:
    """Best-effort local copy of the collaboration selection.

    The mirror lets a half-finished session survive a restart.  It is never
    authoritative: every read or write failure is logged and swallowed so
    that toggling and saving keep working without it.
    """

    def __init__(self, path: Path | str) -> None:
        """Mirror to the JSON file at ``path``."""
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Internal helpers
    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("mirror file does not hold an object")
        return data

    def _write(self, data: dict) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    def persist(
        self, selection: SelectionSet, cities: dict[str, str] | None = None
    ) -> None:
        """Write the collaboration entries of ``selection``."""
        tokens = []
        for identifier in selection.collaborations:
            try:
                tokens.append(encode_token(identifier))
            except ValueError:
                log.warning("Not mirroring unencodable entry %r", identifier)
        try:
            data = self._read()
        except (OSError, ValueError):
            log.warning("Discarding unreadable mirror %s", self.path, exc_info=True)
            data = {}
        data[COLLABS_KEY] = tokens
        data[CITIES_KEY] = dict(cities or {})
        try:
            self._write(data)
        except (OSError, TypeError, ValueError):
            log.warning("Failed to write mirror %s", self.path, exc_info=True)

    def restore(self) -> SelectionSet | None:
        """Return the mirrored selection or ``None`` when there is none."""
        try:
            tokens = self._read().get(COLLABS_KEY)
        except (OSError, ValueError):
            log.warning("Failed to read mirror %s", self.path, exc_info=True)
            return None
        if not isinstance(tokens, list):
            return None

        collaborations: list[str] = []
        for token in tokens:
            if not isinstance(token, str):
                continue
            try:
                identifier = decode_token(token)
            except IdentifierDecodeError:
                log.warning("Dropping malformed mirrored entry %r", token)
                continue
            if identifier not in collaborations:
                collaborations.append(identifier)
        return SelectionSet(collaborations=collaborations)

    def restore_cities(self) -> dict[str, str]:
        """Return the mirrored template id -> city map."""
        try:
            cities = self._read().get(CITIES_KEY)
        except (OSError, ValueError):
            log.warning("Failed to read mirror %s", self.path, exc_info=True)
            return {}
        if not isinstance(cities, dict):
            return {}
        return {
            str(k): v for k, v in cities.items() if isinstance(v, str) and v.strip()
        }

    def clear(self) -> None:
        """Forget the mirrored selection."""
        try:
            data = self._read()
            data.pop(COLLABS_KEY, None)
            data.pop(CITIES_KEY, None)
            if data:
                self._write(data)
            else:
                self.path.unlink(missing_ok=True)
        except (OSError, ValueError):
            log.warning("Failed to clear mirror %s", self.path, exc_info=True)
