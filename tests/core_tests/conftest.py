"""
Common fixtures and setup for facade tests.
Provides test entity classes and resets the process-wide registries.
"""
import pytest
from typing import ClassVar, List

from metafacade.core.entity import Entity, accessor
from metafacade.core.metastore import MetaStore
from metafacade.core.storage import InMemoryMetaStorage
from metafacade.core.enregistry import CurrentEntityRegistry, LoopContext
from metafacade.core.capabilities import EditCapability

# ========================================================================
# Test entity classes
# ========================================================================

class Post(Entity):
    """A post with a couple of declared fields and accessors."""
    title: str = ""
    status: str = ""

    calls: ClassVar[List[str]] = []

    @accessor
    def slug(self) -> str:
        Post.calls.append("slug")
        return self.title.lower().replace(" ", "-")

    @accessor
    def excerpt(self) -> str:
        Post.calls.append("excerpt")
        return ""

    @accessor(name="word_count")
    def count_words(self) -> int:
        Post.calls.append("word_count")
        return len(self.title.split())

    def foo(self) -> str:
        """Plain method, not an accessor."""
        return "method"


class Page(Post):
    """Inherits Post's accessors."""
    template: str = "default"


class Snapshot(Entity):
    """Entity that never consults the metadata store."""
    supports_meta: ClassVar[bool] = False
    label: str = ""

    @accessor
    def summary(self) -> str:
        return f"snapshot {self.id}"


class Author:
    """Plain record-like object used as an import source."""
    def __init__(self) -> None:
        self.name = "Ada"
        self.email = "ada@example.com"
        self._secret = "hidden"

# ========================================================================
# Fixtures
# ========================================================================

@pytest.fixture(autouse=True)
def setup_registry():
    """Fresh storage, filters, pin and oracle for every test."""
    MetaStore.reset(InMemoryMetaStorage())
    CurrentEntityRegistry.use_loop(LoopContext())
    CurrentEntityRegistry.clear()
    EditCapability.clear()
    Post.calls.clear()

    yield

    MetaStore.reset()
    CurrentEntityRegistry.clear()
    EditCapability.clear()

@pytest.fixture
def storage() -> InMemoryMetaStorage:
    """The in-memory storage MetaStore is using for this test."""
    return MetaStore.get_storage()

@pytest.fixture
def post(storage: InMemoryMetaStorage) -> Post:
    """Post 42 with a single-valued and a multi-valued metadata key."""
    storage.add(42, "color", "red")
    storage.add(42, "tags", "a")
    storage.add(42, "tags", "b")
    return Post(id=42, title="Hello World", status="publish")
