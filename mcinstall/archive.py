"""Zip / tar.gz extraction and pack200 helpers.

Everything here is synchronous; callers run it on the ``BlockingPool``.
Entry paths are checked so nothing is written outside the target directory.
"""
import io
import logging
import os
import pathlib
import shutil
import struct
import tarfile
import zipfile
from typing import List, Optional, Union

from .errors import ExtractionError

log = logging.getLogger(__name__)

Source = Union[bytes, pathlib.Path]


def safe_join(base: pathlib.Path, relative: str) -> pathlib.Path:
    """Joins ``relative`` onto ``base``, refusing results that escape ``base``."""
    base_resolved = base.resolve()
    candidate = (base_resolved / relative).resolve()
    if candidate != base_resolved and base_resolved not in candidate.parents:
        raise ExtractionError(relative, f"path escapes {base}")
    # Unresolved so an existing symlink at the destination is replaced, not followed
    return pathlib.Path(os.path.normpath(base_resolved / relative))


def _open_zip(source: Source) -> zipfile.ZipFile:
    if isinstance(source, (bytes, bytearray)):
        return zipfile.ZipFile(io.BytesIO(source), 'r')
    return zipfile.ZipFile(source, 'r')


def _common_toplevel(names: List[str]) -> Optional[str]:
    """The single top-level directory every entry sits in, if there is one."""
    tops = set()
    for name in names:
        parts = [p for p in name.split('/') if p]
        if not parts:
            continue
        if len(parts) == 1 and not name.endswith('/'):
            return None
        tops.add(parts[0])
    if len(tops) == 1:
        return tops.pop()
    return None


def extract_zip(
    source: Source,
    target_dir: pathlib.Path,
    strip_toplevel: bool = False,
    skip_meta_inf: bool = False,
) -> List[pathlib.Path]:
    """Extracts a zip archive (bytes or a path) into ``target_dir``.

    Returns the files written.
    """
    label = 'archive' if isinstance(source, (bytes, bytearray)) else str(source)
    written = []
    try:
        with _open_zip(source) as zip_ref:
            members = zip_ref.infolist()
            prefix = _common_toplevel([m.filename for m in members]) if strip_toplevel else None

            # Validate every path before writing anything
            planned = []
            for member in members:
                name = member.filename
                if prefix is not None:
                    name = name[len(prefix):].lstrip('/')
                if not name:
                    continue
                if skip_meta_inf and name.upper().startswith('META-INF/'):
                    continue
                planned.append((member, safe_join(target_dir, name)))

            target_dir.mkdir(parents=True, exist_ok=True)
            for member, dest in planned:
                if member.is_dir():
                    dest.mkdir(parents=True, exist_ok=True)
                    continue
                dest.parent.mkdir(parents=True, exist_ok=True)
                with zip_ref.open(member) as src, open(dest, 'wb') as out:
                    shutil.copyfileobj(src, out)
                written.append(dest)
    except zipfile.BadZipFile as e:
        log.error(f"Failed to read zip file (BadZipFile): {label}")
        raise ExtractionError(label, f"corrupt zip archive: {e}") from e
    except OSError as e:
        log.error(f"Failed to process zip file {label}: {e}")
        raise ExtractionError(label, str(e)) from e
    return written


def read_zip_member(source: Source, name: str) -> Optional[bytes]:
    """Contents of entry ``name`` of a zip archive, or None when it has no such entry."""
    try:
        with _open_zip(source) as zip_ref:
            try:
                return zip_ref.read(name)
            except KeyError:
                return None
    except zipfile.BadZipFile as e:
        raise ExtractionError('archive' if isinstance(source, (bytes, bytearray)) else source, f"corrupt zip archive: {e}") from e


def extract_tar_gz_flatten(data: bytes, target_dir: pathlib.Path) -> int:
    """Extracts a gzip'd tarball, stripping the first entry's top-level directory from every entry.

    Returns the number of entries written.
    """
    count = 0
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode='r:gz') as tar_ref:
            members = tar_ref.getmembers()
            if not members:
                return 0
            top = members[0].name.strip('/').split('/')[0]
            target_dir.mkdir(parents=True, exist_ok=True)

            for member in members:
                parts = member.name.strip('/').split('/')
                if parts and parts[0] == top:
                    parts = parts[1:]
                relative = '/'.join(parts)
                if not relative:
                    continue
                dest = safe_join(target_dir, relative)

                if member.isdir():
                    dest.mkdir(parents=True, exist_ok=True)
                elif member.issym():
                    root = target_dir.resolve()
                    link_target = (dest.parent / member.linkname).resolve()
                    if link_target != root and root not in link_target.parents:
                        raise ExtractionError(member.name, f"link target {member.linkname} escapes {target_dir}")
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    if dest.is_symlink() or dest.exists():
                        dest.unlink()
                    os.symlink(member.linkname, dest)
                elif member.isfile():
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    src = tar_ref.extractfile(member)
                    with src, open(dest, 'wb') as out:
                        shutil.copyfileobj(src, out)
                    if os.name != 'nt':
                        os.chmod(dest, member.mode & 0o777)
                else:
                    log.debug(f"Skipping tar entry {member.name} of unsupported type")
                    continue
                count += 1
    except tarfile.TarError as e:
        log.error(f"Error reading tar archive: {e}")
        raise ExtractionError('tar.gz archive', str(e)) from e
    except OSError as e:
        raise ExtractionError(target_dir, str(e)) from e
    return count


def crop_pack200_signature(data: bytes) -> bytes:
    """Removes the signature appended to a ``.pack`` file.

    The last 8 bytes are a footer whose first 4 hold the signature length
    (little-endian); the signature sits right before the footer.
    """
    if len(data) < 8:
        raise ExtractionError('pack200 file', f"too short for a signature footer ({len(data)} bytes)")
    (sig_len,) = struct.unpack('<I', data[-8:-4])
    end = len(data) - sig_len - 8
    if end < 0:
        raise ExtractionError('pack200 file', f"signature length {sig_len} exceeds file size {len(data)}")
    return data[:end]


def remove_path(path: pathlib.Path) -> None:
    """Deletes a file or a whole directory tree, if present."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
