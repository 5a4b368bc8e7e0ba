"""Scoped ownership of the temporary files a pipeline run creates."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from order_ocr.errors import CleanupError
from order_ocr.utils.logger import get_logger

logger = get_logger(__name__)


class TemporaryFiles:
    """Paths owned by one run, deleted together on release."""

    def __init__(self) -> None:
        self.paths: list[Path] = []

    def register(self, path: Path | str) -> Path:
        """Take ownership of ``path`` and return it as a :class:`Path`."""
        path = Path(path)
        if path not in self.paths:
            self.paths.append(path)
        return path

    def release(self) -> list[CleanupError]:
        """Delete every registered path.

        Missing files are ignored. Other failures are logged and returned,
        never raised.
        """
        failures: list[CleanupError] = []
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                error = CleanupError(f"Could not delete {path}: {exc}", path=str(path))
                logger.warning("%s", error.message)
                failures.append(error)
            else:
                logger.debug("Deleted temporary file %s", path)
        self.paths.clear()
        return failures


@contextmanager
def temporary_files() -> Iterator[TemporaryFiles]:
    """Yield a :class:`TemporaryFiles` that is released on every exit path."""
    files = TemporaryFiles()
    try:
        yield files
    finally:
        files.release()
