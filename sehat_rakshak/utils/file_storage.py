# sehat_rakshak/utils/file_storage.py
"""
Local file storage for generated documents (prescription PDFs).

Paths handed back to callers are relative to the storage root, so the root
can move (FILE_STORAGE_ROOT) without rewriting anything that kept them.
"""

from pathlib import Path, PurePosixPath

from sehat_rakshak.core.config import get_settings

settings = get_settings()


def get_storage_root() -> Path:
    """FILE_STORAGE_ROOT, resolved against the working directory when relative. Created on demand."""
    root = Path(settings.file_storage_root)
    if not root.is_absolute():
        root = Path.cwd() / root
    root.mkdir(parents=True, exist_ok=True)
    return root


def save_bytes_to_storage(data: bytes, filename: str, subdir: str) -> str:
    """
    Write `data` to <root>/<subdir>/<filename> and return "subdir/filename".

    Only the final component of `filename` is used. An existing file with the
    same name is replaced, so re-rendering a document overwrites it.
    """
    relative = PurePosixPath(subdir.replace("\\", "/").strip().strip("/")) / Path(filename).name
    target = get_storage_root() / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return relative.as_posix()
