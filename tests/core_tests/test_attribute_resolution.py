"""
Tests for the attribute resolution chain and its memoization.
"""

from metafacade.core.entity import AttributeOrigin, Entity, accessor
from metafacade.core.metastore import MetaStore
from metafacade.core.resolver import AttributeResolver

from conftest import Post, Page, Snapshot


class TestResolutionOrder:
    """declared -> meta -> computed -> sentinel"""

    def test_declared_field_skips_store(self, post, storage):
        assert AttributeResolver.get(post, "title") == "Hello World"
        assert storage.fetch_count(42, "title") == 0
        assert AttributeResolver.origin(post, "title") == AttributeOrigin.DECLARED

    def test_declared_falsy_field_is_returned_as_is(self, storage):
        post = Post(id=7, title="", status="")
        storage.add(7, "status", "publish")
        assert AttributeResolver.get(post, "status") == ""
        assert storage.fetch_count(7, "status") == 0

    def test_single_meta_value_is_unwrapped(self, post):
        assert AttributeResolver.get(post, "color") == "red"
        assert AttributeResolver.origin(post, "color") == AttributeOrigin.META

    def test_multi_meta_value_keeps_order(self, post):
        assert AttributeResolver.get(post, "tags") == ["a", "b"]

    def test_meta_wins_over_accessor(self, post, storage):
        storage.add(42, "slug", "custom-slug")
        assert post.resolve("slug") == "custom-slug"
        assert "slug" not in Post.calls

    def test_falsy_meta_falls_through_to_accessor(self, post, storage):
        storage.add(42, "slug", "")
        assert post.resolve("slug") == "hello-world"
        assert AttributeResolver.origin(post, "slug") == AttributeOrigin.COMPUTED

    def test_accessor_with_public_name(self, post):
        assert post.resolve("word_count") == 2
        assert Post.calls == ["word_count"]

    def test_plain_method_is_not_an_accessor(self, post):
        assert post.resolve("foo") is False
        assert AttributeResolver.origin(post, "foo") == AttributeOrigin.SENTINEL

    def test_inherited_accessors(self, storage):
        page = Page(id=3, title="About Us")
        assert page.resolve("slug") == "about-us"
        assert page.resolve("template") == "default"

    def test_missing_field_resolves_to_false(self, post):
        assert AttributeResolver.get(post, "missing") is False
        assert AttributeResolver.origin(post, "missing") == AttributeOrigin.SENTINEL

    def test_entity_without_meta_support_never_fetches(self, storage):
        snap = Snapshot(id=9, label="x")
        storage.add(9, "color", "blue")
        assert snap.resolve("color") is False
        assert snap.resolve("summary") == "snapshot 9"
        assert storage.get_registry_status()["round_trips"] == 0


class TestMemoization:
    """Each name is resolved once per instance."""

    def test_missing_field_is_fetched_once(self, post, storage):
        assert post.resolve("missing") is False
        assert post.resolve("missing") is False
        assert storage.fetch_count(42, "missing") == 1

    def test_meta_field_is_fetched_once(self, post, storage):
        for _ in range(3):
            assert post.resolve("color") == "red"
        assert storage.fetch_count(42, "color") == 1

    def test_sentinel_survives_later_store_writes(self, post, storage):
        assert post.resolve("mood") is False
        storage.write(42, "mood", "happy")
        assert post.resolve("mood") is False
        assert Post(id=42).resolve("mood") == "happy"

    def test_accessor_runs_once(self, post):
        post.resolve("excerpt")
        post.resolve("excerpt")
        assert Post.calls == ["excerpt"]
        assert AttributeResolver.origin(post, "excerpt") == AttributeOrigin.COMPUTED

    def test_cache_is_per_instance(self, storage):
        first = Post(id=42)
        second = Post(id=42)
        first.resolve("missing")
        second.resolve("missing")
        assert storage.fetch_count(42, "missing") == 2

    def test_unresolved_origin_is_none(self, post):
        assert AttributeResolver.origin(post, "never_asked") is None


class TestResolverSurface:
    """call(), has_field() and the entity conveniences."""

    def test_call_ignores_arguments(self, post):
        assert AttributeResolver.call(post, "color", "ignored", size="large") == "red"
        assert post.call("slug", 1, 2) == "hello-world"

    def test_has_field_coerces_to_bool(self, post):
        assert AttributeResolver.has_field(post, "color") is True
        assert AttributeResolver.has_field(post, "missing") is False
        assert post.has_field("excerpt") is False

    def test_subscript_and_membership(self, post):
        assert post["tags"] == ["a", "b"]
        assert "color" in post
        assert "missing" not in post
        assert 42 not in post

    def test_sentinel_and_falsy_value_only_differ_by_origin(self, post):
        assert not post.resolve("excerpt")
        assert not post.resolve("nothing_here")
        assert AttributeResolver.origin(post, "excerpt") != AttributeResolver.origin(post, "nothing_here")


class TestPrefetch:
    """Batched resolution."""

    def test_prefetch_uses_one_round_trip(self, post, storage):
        resolved = AttributeResolver.prefetch(post, ["color", "tags", "missing", "slug"])
        assert storage.get_registry_status()["round_trips"] == 1
        assert resolved == {"color": "red", "tags": ["a", "b"], "missing": False, "slug": "hello-world"}

    def test_prefetched_fields_are_not_fetched_again(self, post, storage):
        AttributeResolver.prefetch(post, ["color", "missing"])
        assert post.resolve("color") == "red"
        assert post.resolve("missing") is False
        assert storage.get_registry_status()["round_trips"] == 1

    def test_prefetch_skips_declared_and_cached(self, post, storage):
        post.resolve("color")
        assert AttributeResolver.prefetch(post, ["title", "color"]) == {}
        assert storage.get_registry_status()["round_trips"] == 1

    def test_prefetch_respects_meta_capability(self, storage):
        assert AttributeResolver.prefetch(Snapshot(id=1), ["color"]) == {}
        assert storage.get_registry_status()["round_trips"] == 0

    def test_prefetch_runs_filters(self, post):
        MetaStore.add_filter("meta", lambda value, ctx: value.upper() if isinstance(value, str) else value)
        assert AttributeResolver.prefetch(post, ["color"]) == {"color": "RED"}

    def test_prefetch_cost_is_one_trip_per_entity(self, storage):
        posts = [Post(id=i) for i in range(10)]
        for p in posts:
            AttributeResolver.prefetch(p, ["a", "b", "c"])
        assert storage.get_registry_status()["round_trips"] == 10

    def test_unbatched_cost_is_one_trip_per_field(self, storage):
        posts = [Post(id=i) for i in range(10)]
        for p in posts:
            for field in ("a", "b", "c"):
                p.resolve(field)
        assert storage.get_registry_status()["round_trips"] == 30


class Card(Entity):
    """Entity whose accessors read other resolved names."""

    @accessor
    def headline(self) -> str:
        return f"{self['color']}!"

    @accessor
    def badge(self) -> str:
        return f"[{self['label']}]"

    @accessor
    def label(self) -> str:
        return "plain"


class TestPrefetchAcrossAccessors:
    """Accessors that read names of the same batch."""

    def test_accessor_reading_batched_meta_does_not_refetch(self, storage):
        storage.add(1, "color", "red")
        card = Card(id=1)
        resolved = AttributeResolver.prefetch(card, ["headline", "color"])
        assert resolved == {"headline": "red!", "color": "red"}
        assert storage.fetch_count(1, "color") == 1
        assert storage.get_registry_status()["round_trips"] == 1

    def test_accessor_reading_batched_miss_does_not_refetch(self, storage):
        card = Card(id=1)
        resolved = AttributeResolver.prefetch(card, ["badge", "label"])
        assert resolved == {"badge": "[plain]", "label": "plain"}
        assert storage.fetch_count(1, "label") == 1
        assert storage.get_registry_status()["round_trips"] == 1
        assert AttributeResolver.origin(card, "label") == AttributeOrigin.COMPUTED

    def test_cached_meta_is_not_overwritten(self, storage):
        storage.add(1, "color", "red")
        card = Card(id=1)
        AttributeResolver.prefetch(card, ["headline", "color"])
        assert AttributeResolver.origin(card, "color") == AttributeOrigin.META
        assert card.resolve("headline") == "red!"
        assert storage.get_registry_status()["round_trips"] == 1


class TestFetchAccounting:
    """The in-memory read log stays bounded."""

    def test_repeated_reads_keep_one_entry_per_pair(self, storage):
        storage.add(1, "color", "red")
        for _ in range(1000):
            assert Card(id=1).resolve("color") == "red"
        assert storage.fetch_count(1, "color") == 1000
        assert storage.get_registry_status()["fetched_pairs"] == 1

    def test_miss_is_fetched_once_even_when_accessor_runs_again(self, storage):
        card = Card(id=1)
        assert card.resolve("label") == "plain"
        assert card.resolve("label") == "plain"
        assert storage.fetch_count(1, "label") == 1
