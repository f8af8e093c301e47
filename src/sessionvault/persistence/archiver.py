"""Directory tree <-> archive bytes.

Archives are gzip-compressed tar streams. Entries are written in sorted
order with owner fields cleared and a fixed gzip header timestamp, so the
same tree always produces the same bytes. File modes and modification times
are preserved.

The connection client keeps writing into its session directory while a
backup runs, so the walk tolerates files disappearing underneath it and
reads each file completely before adding it to the archive.
"""

from __future__ import annotations

from dataclasses import dataclass
import fnmatch
import gzip
import io
import os
from pathlib import Path, PurePosixPath
import shutil
import stat
import tarfile
import tempfile
import zlib

from sessionvault.core.errors import DecodingError, EncodingError
from sessionvault.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Archive:
    """A serialized directory tree.

    Attributes:
        data: The archive bytes.
        file_count: Number of regular files in the archive.
    """

    data: bytes
    file_count: int

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return self.file_count == 0


class Archiver:
    """Serializes session directories into archives and back.

    Usage:
        archiver = Archiver(exclude_patterns=["Default/Cache/*"])
        archive = archiver.pack(Path("session"))
        archiver.deserialize(archive.data, Path("restored-session"))
    """

    def __init__(self, exclude_patterns: list[str] | tuple[str, ...] = ()) -> None:
        """Initialize the archiver.

        Args:
            exclude_patterns: fnmatch globs matched against POSIX paths relative
                to the archived directory. A matching directory is skipped whole.
        """
        self._exclude_patterns = tuple(exclude_patterns)

    def serialize(self, directory: Path) -> bytes:
        """Archive ``directory`` and return the bytes.

        A missing directory yields a valid archive with no entries.

        Raises:
            EncodingError: On unrecoverable I/O errors.
        """
        return self.pack(directory).data

    def pack(self, directory: Path) -> Archive:
        """Archive ``directory``, also reporting how many files went in.

        Raises:
            EncodingError: On unrecoverable I/O errors.
        """
        directory = Path(directory)
        buffer = io.BytesIO()
        file_count = 0
        try:
            with (
                gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as gz,
                tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar,
            ):
                if directory.is_dir():
                    file_count = self._add_tree(tar, directory)
        except EncodingError:
            raise
        except OSError as e:
            raise EncodingError(
                f"Failed to archive session directory: {e}",
                path=directory,
                details={"errno": e.errno},
            ) from e
        return Archive(data=buffer.getvalue(), file_count=file_count)

    def _is_excluded(self, relative: PurePosixPath) -> bool:
        text = relative.as_posix()
        return any(fnmatch.fnmatch(text, pattern) for pattern in self._exclude_patterns)

    def _add_tree(self, tar: tarfile.TarFile, root: Path) -> int:
        file_count = 0
        for current, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
            current_path = Path(current)
            rel_dir = PurePosixPath(current_path.relative_to(root).as_posix())

            kept_dirs = []
            for name in sorted(dirnames):
                relative = rel_dir / name
                if self._is_excluded(relative):
                    continue
                full = current_path / name
                if full.is_symlink():
                    # os.walk does not descend into symlinked dirs; treat as a link entry
                    self._add_symlink(tar, full, relative)
                    continue
                if self._add_directory(tar, full, relative):
                    kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                relative = rel_dir / name
                if self._is_excluded(relative):
                    continue
                full = current_path / name
                if full.is_symlink():
                    self._add_symlink(tar, full, relative)
                elif self._add_file(tar, full, relative):
                    file_count += 1
        return file_count

    def _add_directory(self, tar: tarfile.TarFile, full: Path, relative: PurePosixPath) -> bool:
        try:
            st = full.lstat()
        except FileNotFoundError:
            return False
        info = _new_info(relative, st)
        info.type = tarfile.DIRTYPE
        tar.addfile(info)
        return True

    def _add_file(self, tar: tarfile.TarFile, full: Path, relative: PurePosixPath) -> bool:
        try:
            st = full.lstat()
            if not stat.S_ISREG(st.st_mode):
                log.debug("archive.entry.skipped", path=relative.as_posix(), reason="not_regular")
                return False
            content = full.read_bytes()
        except FileNotFoundError:
            log.debug("archive.entry.skipped", path=relative.as_posix(), reason="vanished")
            return False
        except OSError as e:
            raise EncodingError(
                f"Failed to read {relative.as_posix()}: {e}",
                path=full,
                details={"errno": e.errno},
            ) from e

        info = _new_info(relative, st)
        info.size = len(content)
        tar.addfile(info, io.BytesIO(content))
        return True

    def _add_symlink(self, tar: tarfile.TarFile, full: Path, relative: PurePosixPath) -> None:
        try:
            target = os.readlink(full)
            st = full.lstat()
        except FileNotFoundError:
            return
        resolved = os.path.normpath(os.path.join(os.path.dirname(relative.as_posix()), target))
        if os.path.isabs(target) or resolved == ".." or resolved.startswith("../"):
            # Browser profile lock files point at host-specific absolute targets.
            log.debug("archive.entry.skipped", path=relative.as_posix(), reason="external_link")
            return
        info = _new_info(relative, st)
        info.type = tarfile.SYMTYPE
        info.linkname = target
        tar.addfile(info)

    def deserialize(self, data: bytes, target: Path) -> None:
        """Replace the contents of ``target`` with the tree in ``data``.

        The archive is validated and fully extracted into a temporary sibling
        directory first; ``target`` is only swapped out once that succeeded.

        Raises:
            DecodingError: If the archive is malformed or cannot be written.
        """
        target = Path(target)
        parent = target.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.restore-", dir=parent))
        except OSError as e:
            raise DecodingError(
                f"Failed to prepare restore directory: {e}", path=target
            ) from e

        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
                members = tar.getmembers()
                for member in members:
                    _validate_member(member)
                tar.extractall(staging, members=members, filter="data")
        except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise DecodingError(f"Failed to unpack session archive: {e}", path=target) from e
        except DecodingError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
            elif target.exists():
                shutil.rmtree(target)
            staging.rename(target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise DecodingError(f"Failed to replace session directory: {e}", path=target) from e


def _new_info(relative: PurePosixPath, st: os.stat_result) -> tarfile.TarInfo:
    info = tarfile.TarInfo(relative.as_posix())
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = int(st.st_mtime)
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def _validate_member(member: tarfile.TarInfo) -> None:
    path = PurePosixPath(member.name)
    if path.is_absolute() or ".." in path.parts:
        raise DecodingError(f"Unsafe path in archive: {member.name!r}")
    if not (member.isfile() or member.isdir() or member.issym()):
        raise DecodingError(f"Unsupported archive entry type for {member.name!r}")


def _raise_walk_error(error: OSError) -> None:
    if isinstance(error, FileNotFoundError):
        return
    raise error
