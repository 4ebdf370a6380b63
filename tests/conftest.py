import pytest

from dockdeps.errors import ImageFetchError


class FakeFetcher:
    """Canned ONBUILD triggers per image; records every lookup."""

    def __init__(self):
        self.triggers = {}
        self.failing = set()
        self.calls = []

    def __call__(self, image, insecure_registries):
        self.calls.append((image, set(insecure_registries)))
        if image in self.failing:
            raise ImageFetchError(image, "connection refused")
        return self.triggers.get(image, [])

    @property
    def images(self):
        return [image for image, _ in self.calls]


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def workspace(tmp_path):
    """Writes files under tmp_path; ``write('a/b.txt', 'content')``."""
    class Workspace:
        root = tmp_path

        def write(self, path, content=""):
            target = tmp_path / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            return target

        def mkdir(self, path):
            target = tmp_path / path
            target.mkdir(parents=True, exist_ok=True)
            return target

        def __str__(self):
            return str(tmp_path)

    return Workspace()
