from typing import Dict, Iterable, List, Mapping, Set

from loguru import logger

from pyserialplot.telemetry.line_parser import RESERVED_CHANNEL_KEY


class MetadataStore:
    """
    Latest value per metadata key plus the user's display selection.

    Keys are case-sensitive. ``seen_keys`` keeps first-seen order so a UI can
    enumerate keys in the order they arrived.
    """

    def __init__(self):
        self.latest: Dict[str, str] = {}
        self.selected_keys: Set[str] = set()
        self._seen: Dict[str, None] = {}

    @property
    def seen_keys(self) -> List[str]:
        """All keys observed since the last reset, in first-seen order."""
        return list(self._seen)

    def is_seen(self, key: str) -> bool:
        return key in self._seen

    def observe(self, kv: Mapping[str, str]) -> List[str]:
        """
        Record the values of one parsed line.

        Parameters
        ----------
        kv : Mapping[str, str]
            Key/value pairs from a parsed line.

        Returns
        -------
        List[str]
            Keys seen for the first time, in the order they were observed.
        """
        new_keys = []
        for raw_key, raw_value in kv.items():
            key = raw_key.strip()
            if not key or key.upper() == RESERVED_CHANNEL_KEY:
                continue
            self.latest[key] = raw_value.strip()
            if key not in self._seen:
                self._seen[key] = None
                new_keys.append(key)

        if new_keys:
            logger.debug(f"New metadata keys: {new_keys}")
        return new_keys

    def select(self, keys: Iterable[str]) -> int:
        """Add seen keys to the display selection. Returns how many were added."""
        added = 0
        for raw_key in keys:
            key = raw_key.strip()
            if not key:
                continue
            if key not in self._seen:
                logger.warning(f"Ignoring selection of unseen metadata key '{key}'")
                continue
            if key not in self.selected_keys:
                self.selected_keys.add(key)
                added += 1
        return added

    def deselect(self, keys: Iterable[str]) -> int:
        """Remove keys from the display selection. Returns how many were removed."""
        removed = 0
        for raw_key in keys:
            key = raw_key.strip()
            if key in self.selected_keys:
                self.selected_keys.discard(key)
                removed += 1
        return removed

    def render_display(self) -> str:
        """Selected keys sorted case-insensitively, one ``key=value`` per line."""
        keys = sorted(self.selected_keys, key=lambda k: (k.casefold(), k))
        return "\n".join(f"{k}={self.latest.get(k, '')}" for k in keys)

    def reset(self) -> None:
        self.latest.clear()
        self.selected_keys.clear()
        self._seen.clear()
        logger.info("Metadata store reset")
