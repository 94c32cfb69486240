from typing import List
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from metafacade import (
    AttributeResolver, CurrentEntityRegistry, EditCapability, Entity, MetaStore,
    SqlMetaStorage, accessor, the_loop,
)
from metafacade.core.storage import Base

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# SQLite-backed metadata store
engine = create_engine("sqlite:///:memory:")
Base.metadata.create_all(engine)
storage = SqlMetaStorage(session_factory=sessionmaker(bind=engine))
MetaStore.use_storage(storage)

class Post(Entity):
    """A blog post as a template would see it"""
    title: str = ""
    author: str = ""

    @accessor
    def slug(self) -> str:
        return self.title.lower().replace(" ", "-")

def print_post(post: Post, fields: List[str]) -> None:
    """Helper function to print what a template would render"""
    for field in fields:
        print(f"  {field:<10} = {post[field]!r:<20} ({AttributeResolver.origin(post, field).value})")
    print()

# Seed some metadata
storage.add(1, "color", "red")
storage.add(1, "tags", "python")
storage.add(1, "tags", "templates")
storage.add(2, "color", "blue")

# Filters can rewrite values on the way out
MetaStore.add_filter("meta", lambda value, ctx: value.upper() if ctx.field_name == "color" and value else value)

# Only editors may edit
EditCapability.use_oracle(lambda user, post_id: user == "editor", current_user="editor")

posts = [
    Post(id=1, title="Hello World", author="ada"),
    Post(id=2, title="Second Post", author="grace"),
]

print("=== Rendering loop ===")
for post in the_loop(posts):
    print(f"Current post: {CurrentEntityRegistry.current()!r}")
    print_post(post, ["title", "slug", "color", "tags", "subtitle", "can_edit"])

print("=== Batched prefetch ===")
fresh = Post(id=1, title="Hello World")
AttributeResolver.prefetch(fresh, ["color", "tags", "subtitle"])
print_post(fresh, ["color", "tags", "subtitle"])
print(f"Storage status: {storage.get_registry_status()}")
