import io
import os
import tarfile
import threading

import pytest

from dockdeps.BUILDERS.context_builder import (
    ContextPipe,
    create_docker_tar_context,
    create_tar,
    stream_docker_tar_context,
)
from dockdeps.MODELS.docker_artifact import DockerArtifact
from dockdeps.RESOLVERS.dependency_resolver import DependencyResolver
from dockdeps.errors import ArchiveError, WorkspaceError

FILES = {
    "foo": "baz1",
    "bar/bat": "baz2",
    "bar/baz": "baz3",
}


def read_tar(data):
    contents = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        for member in tar.getmembers():
            f = tar.extractfile(member)
            contents[member.name] = f.read().decode() if f else None
    return contents


def tar_members(data):
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        return tar.getmembers()


class TestCreateTar:
    """Tests for create_tar."""

    def test_relative_paths(self, workspace, monkeypatch):
        for path, content in FILES.items():
            workspace.write(path, content)
        monkeypatch.chdir(workspace.root)

        out = io.BytesIO()
        create_tar(out, ".", list(FILES))
        assert read_tar(out.getvalue()) == FILES

    def test_sub_directory(self, workspace, monkeypatch):
        for path, content in FILES.items():
            workspace.write("sub/" + path, content)
        monkeypatch.chdir(workspace.root)

        out = io.BytesIO()
        create_tar(out, "sub", ["sub/" + path for path in FILES])
        assert read_tar(out.getvalue()) == FILES

    def test_absolute_paths(self, workspace):
        paths = [str(workspace.write(path, content)) for path, content in FILES.items()]

        out = io.BytesIO()
        create_tar(out, str(workspace), paths)
        assert read_tar(out.getvalue()) == FILES

    def test_empty_folder(self, workspace, monkeypatch):
        workspace.mkdir("empty")
        monkeypatch.chdir(workspace.root)

        out = io.BytesIO()
        create_tar(out, ".", ["empty"])

        folders = [m.name for m in tar_members(out.getvalue()) if m.isdir()]
        assert folders == ["empty"]

    def test_folder_with_files_is_not_written(self, workspace):
        workspace.write("src/app.py", "print()")

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(workspace.root / "src")])
        assert tar_members(out.getvalue()) == []

    def test_order_is_preserved(self, workspace):
        workspace.write("b", "2")
        workspace.write("a", "1")

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(workspace.root / "b"), str(workspace.root / "a")])
        assert [m.name for m in tar_members(out.getvalue())] == ["b", "a"]

    def test_mode_is_preserved(self, workspace):
        script = workspace.write("run.sh", "#!/bin/sh\n")
        os.chmod(script, 0o755)

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(script)])

        (member,) = tar_members(out.getvalue())
        assert member.mode & 0o777 == 0o755

    def test_owner_is_normalized(self, workspace):
        path = workspace.write("foo", "bar")

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(path)])

        (member,) = tar_members(out.getvalue())
        assert (member.uid, member.gid, member.uname, member.gname) == (0, 0, "", "")

    def test_output_is_deterministic(self, workspace):
        paths = [str(workspace.write(path, content)) for path, content in FILES.items()]

        first, second = io.BytesIO(), io.BytesIO()
        create_tar(first, str(workspace), paths)
        create_tar(second, str(workspace), paths)
        assert first.getvalue() == second.getvalue()

    def test_symlinks_are_not_followed(self, workspace):
        workspace.write("target.txt", "data")
        os.symlink("target.txt", workspace.root / "link")

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(workspace.root / "link")])

        (member,) = tar_members(out.getvalue())
        assert member.issym()
        assert member.linkname == "target.txt"

    def test_hard_links_keep_their_content(self, workspace):
        first = workspace.write("a.txt", "hello")
        second = workspace.root / "b.txt"
        os.link(first, second)

        out = io.BytesIO()
        create_tar(out, str(workspace), [str(first), str(second)])

        members = {m.name: m for m in tar_members(out.getvalue())}
        assert members["b.txt"].isfile()
        assert members["b.txt"].size == 5
        assert read_tar(out.getvalue()) == {"a.txt": "hello", "b.txt": "hello"}

    def test_missing_path(self, workspace):
        with pytest.raises(ArchiveError, match="archiving"):
            create_tar(io.BytesIO(), str(workspace), [str(workspace.root / "missing")])


def make_docker_context(workspace, prefix):
    workspace.write(prefix + "files/ignored.txt")
    workspace.write(prefix + "files/included.txt")
    workspace.write(prefix + ".dockerignore", "**/ignored.txt\nalsoignored.txt")
    workspace.write(prefix + "Dockerfile", "FROM alpine\nCOPY ./files /files")
    workspace.write(prefix + "ignored.txt")
    workspace.write(prefix + "alsoignored.txt")


class TestDockerTarContext:
    """Tests for building the context of a docker artifact."""

    def test_create(self, workspace, fetcher):
        make_docker_context(workspace, "")
        artifact = DockerArtifact(workspace=str(workspace))

        out = io.BytesIO()
        create_docker_tar_context(out, artifact, DependencyResolver(fetcher=fetcher))
        assert sorted(read_tar(out.getvalue())) == ["Dockerfile", "files/included.txt"]

    @pytest.mark.parametrize("directory", [".", "sub"])
    def test_stream(self, workspace, fetcher, monkeypatch, directory):
        prefix = "" if directory == "." else directory + "/"
        make_docker_context(workspace, prefix)
        monkeypatch.chdir(workspace.root)

        artifact = DockerArtifact(workspace=directory, dockerfile="Dockerfile")
        names = set()
        with stream_docker_tar_context(artifact, DependencyResolver(fetcher=fetcher)) as pipe:
            with tarfile.open(fileobj=pipe, mode="r|") as tar:
                for member in tar:
                    names.add(member.name)

        assert "ignored.txt" not in names
        assert "alsoignored.txt" not in names
        assert "files/ignored.txt" not in names
        assert "files/included.txt" in names
        assert "Dockerfile" in names

    def test_stream_error_reaches_the_reader(self, workspace, fetcher):
        artifact = DockerArtifact(workspace=str(workspace))

        with stream_docker_tar_context(artifact, DependencyResolver(fetcher=fetcher)) as pipe:
            with pytest.raises(WorkspaceError, match="opening dockerfile"):
                pipe.read()


class TestContextPipe:
    """Tests for the producer/reader pipe."""

    def test_read_sizes(self):
        pipe = ContextPipe()
        pipe.write(b"abc")
        pipe.write(b"def")
        pipe.close_writer()

        assert pipe.read(2) == b"ab"
        assert pipe.read(3) == b"cde"
        assert pipe.read() == b"f"
        assert pipe.read() == b""

    def test_error_after_pending_data(self):
        pipe = ContextPipe()
        pipe.write(b"abc")
        pipe.close_writer(RuntimeError("boom"))

        assert pipe.read(2) == b"ab"
        assert pipe.read() == b"c"
        with pytest.raises(RuntimeError, match="boom"):
            pipe.read()

    def test_write_after_reader_closed(self):
        pipe = ContextPipe()
        pipe.close()
        with pytest.raises(BrokenPipeError):
            pipe.write(b"data")

    def test_close_writer_after_reader_closed(self):
        pipe = ContextPipe(max_chunks=1, poll_interval=0.01)
        pipe.write(b"fills the queue")
        pipe.close()
        pipe.close_writer()

    def test_writer_blocks_until_read(self):
        pipe = ContextPipe(max_chunks=1, poll_interval=0.01)
        pipe.write(b"a")

        writer = threading.Thread(target=pipe.write, args=(b"b",))
        writer.start()
        writer.join(0.2)
        assert writer.is_alive()

        assert pipe.read(1) == b"a"
        writer.join(5)
        assert not writer.is_alive()
        assert pipe.read(1) == b"b"

    def test_blocked_writer_is_released_by_close(self):
        pipe = ContextPipe(max_chunks=1, poll_interval=0.01)
        pipe.write(b"a")
        errors = []

        def write():
            try:
                pipe.write(b"b")
            except BrokenPipeError as e:
                errors.append(e)

        writer = threading.Thread(target=write)
        writer.start()
        pipe.close()
        writer.join(5)

        assert not writer.is_alive()
        assert len(errors) == 1
