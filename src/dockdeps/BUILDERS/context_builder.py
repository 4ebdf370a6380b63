"""
Builders for docker build context archives.
"""
import logging
import os
import queue
import stat
import tarfile
import threading
from typing import BinaryIO, Iterable, Optional

from ..MODELS.docker_artifact import DockerArtifact
from ..RESOLVERS.dependency_resolver import DependencyResolver
from ..errors import ArchiveError

logger = logging.getLogger(__name__)


def _has_files(abs_dir: str) -> bool:
    return any(filenames for _, _, filenames in os.walk(abs_dir))


def _tarinfo(tar: tarfile.TarFile, abs_path: str, name: str) -> tarfile.TarInfo:
    info = tar.gettarinfo(abs_path, arcname=name)
    if info.islnk():
        # Hard links to an earlier entry are archived as full copies
        info.type = tarfile.REGTYPE
        info.linkname = ""
        info.size = os.stat(abs_path).st_size
    # Owner names vary between machines; keep the archive reproducible
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mtime = int(info.mtime)
    return info


def create_tar(out: BinaryIO, context_root: str, paths: Iterable[str]) -> None:
    """
    Writes a tar archive of ``paths`` to ``out``.

    Entry names are relative to ``context_root`` and use forward slashes.
    Files keep their mode and content. A directory is only written when there
    are no files beneath it, so empty directories survive. Entries are
    written in the order given.

    :param out: Binary stream to write to. It is not closed.
    :param context_root: Directory entry names are relative to.
    :param paths: Paths to archive, absolute or relative to the working directory.
    :raises ArchiveError: If a path cannot be read or the stream cannot be written.
    """
    abs_context = os.path.abspath(context_root)

    try:
        with tarfile.open(fileobj=out, mode="w|", format=tarfile.PAX_FORMAT) as tar:
            for path in paths:
                abs_path = os.path.abspath(path)
                name = os.path.relpath(abs_path, abs_context).replace(os.sep, "/")

                mode = os.lstat(abs_path).st_mode
                if stat.S_ISREG(mode):
                    with open(abs_path, "rb") as f:
                        tar.addfile(_tarinfo(tar, abs_path, name), f)
                elif stat.S_ISDIR(mode):
                    if not _has_files(abs_path):
                        tar.addfile(_tarinfo(tar, abs_path, name))
                elif stat.S_ISLNK(mode):
                    tar.addfile(_tarinfo(tar, abs_path, name))
                else:
                    logger.debug("Skipping %s, not a file or directory", abs_path)
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"writing tar for {context_root}: {e}") from e


def create_docker_tar_context(
    out: BinaryIO,
    artifact: DockerArtifact,
    resolver: Optional[DependencyResolver] = None,
) -> None:
    """
    Resolves the artifact's dependencies and writes them as a build context
    archive. Entry names are relative to the artifact workspace.
    """
    resolver = resolver or DependencyResolver()
    deps = resolver.resolve(
        artifact.workspace,
        artifact.dockerfile,
        artifact.build_args,
        artifact.insecure_registry_set,
    )

    paths = [os.path.join(artifact.workspace, dep) for dep in deps]
    create_tar(out, artifact.workspace, paths)


class _Eof:
    def __init__(self, error: Optional[BaseException] = None):
        self.error = error


class ContextPipe:
    """
    Bounded in-memory pipe between an archive producer thread and a reader.

    ``write`` blocks while ``max_chunks`` chunks are waiting to be read.
    When the producer finishes with an error, the reader gets that error once
    the data written before it has been read. When the reader closes early,
    the next ``write`` raises ``BrokenPipeError``.
    """

    def __init__(self, max_chunks: int = 16, poll_interval: float = 0.1):
        self._chunks = queue.Queue(maxsize=max_chunks)
        self._poll_interval = poll_interval
        self._reader_closed = threading.Event()
        self._pending = bytearray()
        self._eof: Optional[_Eof] = None

    def _put(self, item) -> None:
        while True:
            if self._reader_closed.is_set():
                raise BrokenPipeError("context pipe closed by reader")
            try:
                self._chunks.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue

    def write(self, data) -> int:
        self._put(bytes(data))
        return len(data)

    def close_writer(self, error: Optional[BaseException] = None) -> None:
        """Marks the end of the stream. A reader that is gone is not an error here."""
        try:
            self._put(_Eof(error))
        except BrokenPipeError:
            pass

    def read(self, size: int = -1) -> bytes:
        while self._eof is None and (size < 0 or len(self._pending) < size):
            item = self._chunks.get()
            if isinstance(item, _Eof):
                self._eof = item
            else:
                self._pending.extend(item)

        if size < 0:
            size = len(self._pending)
        data = bytes(self._pending[:size])
        del self._pending[:size]

        if not data and self._eof is not None and self._eof.error is not None:
            raise self._eof.error
        return data

    def close(self) -> None:
        self._reader_closed.set()

    def __enter__(self) -> "ContextPipe":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def stream_docker_tar_context(
    artifact: DockerArtifact,
    resolver: Optional[DependencyResolver] = None,
    max_chunks: int = 16,
) -> ContextPipe:
    """
    Starts building the artifact's context archive in a background thread
    and returns the pipe to read it from.

    The producer stops at its first error, which the reader then raises.
    Closing the pipe stops the producer.
    """
    pipe = ContextPipe(max_chunks=max_chunks)

    def produce():
        try:
            create_docker_tar_context(pipe, artifact, resolver)
        except Exception as e:
            logger.debug("Context producer stopped: %s", e)
            pipe.close_writer(e)
        else:
            pipe.close_writer()

    threading.Thread(target=produce, daemon=True).start()
    return pipe
