"""Two-tier storage for directory snapshots.

Both layers share ``load / store / invalidate``. A missing entry and an
unreadable one look the same to callers: ``load`` returns None.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from .models import DirectoryCacheEntry

logger = logging.getLogger(__name__)


class CacheLayer(Protocol):
    def load(self) -> Optional[DirectoryCacheEntry]:
        ...

    def store(self, entry: DirectoryCacheEntry) -> None:
        ...

    def invalidate(self) -> None:
        ...


class MemoryCacheLayer:
    """Process-lifetime copy of the last snapshot."""

    def __init__(self):
        self._entry: Optional[DirectoryCacheEntry] = None

    def load(self) -> Optional[DirectoryCacheEntry]:
        return self._entry

    def store(self, entry: DirectoryCacheEntry) -> None:
        # Single reference swap, readers never see a half-written snapshot
        self._entry = entry

    def invalidate(self) -> None:
        self._entry = None


class FileCacheLayer:
    """Durable snapshot stored as ``{"servers": [...], "timestamp": "..."}``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[DirectoryCacheEntry]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read directory cache %s: %s", self.path, e)
            return None

        try:
            return DirectoryCacheEntry.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring corrupt directory cache %s: %s", self.path, e)
            return None

    def store(self, entry: DirectoryCacheEntry) -> None:
        """Write the snapshot atomically. Failures are logged, not raised."""
        payload = json.dumps(entry.model_dump(mode="json"), indent=2)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=self.path.name, suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
            tmp_path = None
            logger.debug("Cached %d servers to %s", len(entry.servers), self.path)
        except OSError as e:
            logger.warning("Failed to write directory cache %s: %s", self.path, e)
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def invalidate(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove directory cache %s: %s", self.path, e)
