import pytest

from bookshelf.core.errors import StorageError
from bookshelf.core.models import DraftBook
from bookshelf.core.storage import MemoryStorage


class FlakyStorage(MemoryStorage):
    """Memory storage whose writes fail while ``failing`` is set."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.failing = False
        self.writes = 0

    async def set(self, key, value):
        if self.failing:
            raise StorageError(OSError("disk full"))
        self.writes += 1
        await super().set(key, value)


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def dune():
    return DraftBook(title="Dune", author="Herbert", genre="SF", cover_image_ref="file://a.jpg")


@pytest.fixture
def foundation():
    return DraftBook(title="Foundation", author="Asimov", genre="SF", cover_image_ref="file://b.jpg")
