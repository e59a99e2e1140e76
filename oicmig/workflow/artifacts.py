"""Versioned on-disk store for exported integration archives."""

from datetime import UTC, datetime
from pathlib import Path

from oicmig.core.plan import IntegrationRef

ARCHIVE_SUFFIX = ".iar"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"


class ArtifactStore:
    """Keeps every exported archive as ``<root>/<code>/<version>/<timestamp>.iar``.

    Saving never overwrites an earlier archive, so each promotion run leaves
    a restorable copy behind.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _directory(self, ref: IntegrationRef) -> Path:
        """``<root>/<code>/<version>`` for one integration."""
        return self._root / ref.code / ref.version

    def save(self, ref: IntegrationRef, data: bytes) -> Path:
        """Write a new version of ``ref`` and return its path."""
        directory = self._directory(ref)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(UTC).strftime(TIMESTAMP_FORMAT)
        counter = 0
        path = directory / f"{stamp}-{counter:03d}{ARCHIVE_SUFFIX}"
        while path.exists():
            counter += 1
            path = directory / f"{stamp}-{counter:03d}{ARCHIVE_SUFFIX}"
        path.write_bytes(data)
        return path

    def versions(self, ref: IntegrationRef) -> list[Path]:
        """Stored archives of ``ref``, oldest first."""
        directory = self._directory(ref)
        if not directory.is_dir():
            return []
        return sorted(directory.glob(f"*{ARCHIVE_SUFFIX}"), key=lambda p: p.name)

    def load_latest(self, ref: IntegrationRef) -> bytes:
        """Bytes of the newest stored archive of ``ref``."""
        stored = self.versions(ref)
        if not stored:
            raise FileNotFoundError(f"No stored archive for {ref.identifier}")
        return stored[-1].read_bytes()
