"""Read individual entries out of a LinkedIn data-export ZIP."""

import io
import posixpath
import zipfile


class ArchiveError(Exception):
    """Raised when the uploaded buffer cannot be opened as a ZIP archive."""


def open_archive(zip_bytes):
    if isinstance(zip_bytes, zipfile.ZipFile):
        return zip_bytes
    try:
        return zipfile.ZipFile(io.BytesIO(zip_bytes or b''))
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Not a valid ZIP archive: {exc}") from exc


def find_entry(archive, file_name):
    """Return the ZipInfo whose name matches ``file_name`` ignoring case.

    A bare file name matches on the entry's base name, so ``connections.csv``
    finds ``Basic_LinkedInDataExport/Connections.csv``. A name containing a
    slash has to match the tail of the entry path.
    """
    target = str(file_name or '').replace('\\', '/').strip().strip('/').lower()
    if not target:
        return None
    for info in archive.infolist():
        if info.is_dir():
            continue
        entry_name = info.filename.replace('\\', '/').lower()
        if '/' in target:
            if entry_name == target or entry_name.endswith('/' + target):
                return info
        elif posixpath.basename(entry_name) == target:
            return info
    return None


def read_entry_text(zip_bytes, file_name):
    """Return the decoded text of ``file_name``, or ``''`` when it is absent."""
    archive = open_archive(zip_bytes)
    info = find_entry(archive, file_name)
    if info is None:
        return ''
    with archive.open(info) as handle:
        return handle.read().decode('utf-8', errors='replace')
