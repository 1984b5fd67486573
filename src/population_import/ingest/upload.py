from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import BinaryIO

from population_import.ingest.errors import NoFileProvided, UnsupportedFormat, UploadTooLarge

logger = logging.getLogger(__name__)


# declared types that are accepted as delimited text.
ALLOWED_MEDIA_TYPES = frozenset({
    "text/csv",
    "application/csv",
    "text/plain",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
})

_COPY_CHUNK = 64 * 1024


@dataclass(frozen=True)
class Upload:
    """An uploaded file as delivered by the transport, staged at `path`."""
    filename: str
    media_type: str | None
    path: Path              # scratch copy owned by the import, never the user's original


def _base_media_type(media_type: str | None) -> str | None:
    """`"text/csv; charset=utf-8"` -> `"text/csv"`."""
    if media_type is None:
        return None
    return media_type.split(";", 1)[0].strip().lower() or None


def is_delimited_text(upload: Upload) -> bool:
    """Accept on an allowed declared media type, or on a `.csv` filename."""
    return (
        _base_media_type(upload.media_type) in ALLOWED_MEDIA_TYPES
        or upload.filename.lower().endswith(".csv")
    )


def check_upload(upload: Upload | None) -> Upload:
    """
    Gate an upload before any parsing.

    Raises `NoFileProvided` on `None`, `UnsupportedFormat` on a non-text declared type.
    """
    if upload is None:
        raise NoFileProvided("no upload provided")
    if not is_delimited_text(upload):
        raise UnsupportedFormat(upload.media_type, upload.filename)
    return upload


def stage_upload(
    source: BinaryIO,
    *,
    filename: str,
    media_type: str | None,
    tmp_dir: str | Path | None = None,
    max_bytes: int | None = None,
) -> Upload:
    """
    Copy `source` into a fresh scratch file and return the `Upload` for it.

    Raises `UploadTooLarge` once more than `max_bytes` have been read; the
    partial scratch file is removed before raising.
    """
    suffix = Path(filename).suffix
    fd, name = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=tmp_dir)
    path = Path(name)
    try:
        written = 0
        with os.fdopen(fd, "wb") as out:
            while True:
                chunk = source.read(_COPY_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    raise UploadTooLarge(max_bytes)
                out.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    logger.info("Staged upload %r (%s, %d bytes) at %s", filename, media_type, written, path)
    return Upload(filename=filename, media_type=media_type, path=path)


def stage_file(
    input_path: Path,
    *,
    media_type: str | None = None,
    tmp_dir: str | Path | None = None,
    max_bytes: int | None = None,
) -> Upload:
    """Stage a copy of a local file, so the import may delete it freely."""
    with input_path.open("rb") as f:
        return stage_upload(
            f,
            filename=input_path.name,
            media_type=media_type,
            tmp_dir=tmp_dir,
            max_bytes=max_bytes,
        )


class StagedUpload:
    """
    Scoped ownership of an upload's scratch file.

    The file is removed exactly once: on `release()` or on leaving the `with`
    block, whichever happens first, on every exit path.
    """

    def __init__(self, upload: Upload) -> None:
        self.upload = upload
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def open(self) -> BinaryIO:
        if self._released:
            raise RuntimeError(f"staged upload already released: {self.upload.path}")
        return self.upload.path.open("rb")

    def release(self) -> bool:
        """Remove the scratch file. Returns False if it was already released."""
        if self._released:
            return False
        self._released = True
        try:
            self.upload.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove staged upload %s: %s", self.upload.path, e)
        return True

    def __enter__(self) -> StagedUpload:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def discard_upload(upload: Upload | None) -> None:
    """Remove an upload's scratch file when it is turned away before import."""
    if upload is not None:
        StagedUpload(upload).release()
