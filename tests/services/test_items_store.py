"""Tests for the in-memory items store."""

import pytest

from article_pipeline.schemas.content import ContentItem, GeneratedContent, ItemStatus
from article_pipeline.services.items_store import ItemNotFoundError, ItemsStore


def make_items() -> list[ContentItem]:
    return [ContentItem(id="a", title="Solar ROI"), ContentItem(id="b", title="Net Metering")]


class TestItemsStore:
    def test_set_items_resets_state(self) -> None:
        store = ItemsStore()
        item = ContentItem(id="a", title="T", status=ItemStatus.DONE)
        item.generated_content = GeneratedContent(title="T", slug="t")

        store.set_items([item])

        assert store.get("a").status == ItemStatus.IDLE
        assert store.get("a").generated_content is None
        assert len(store) == 1

    def test_order_is_preserved(self) -> None:
        store = ItemsStore(make_items())
        assert [i.id for i in store.all()] == ["a", "b"]
        assert "b" in store

    def test_unknown_item_raises(self) -> None:
        with pytest.raises(ItemNotFoundError):
            ItemsStore().update_status("zzz", ItemStatus.ERROR, "x")

    def test_set_content_marks_done(self) -> None:
        store = ItemsStore(make_items())
        store.set_content("a", GeneratedContent(title="T", slug="t"))
        item = store.get("a")
        assert item.status == ItemStatus.DONE
        assert item.status_text == "Completed"

    def test_attach_content_keeps_status(self) -> None:
        store = ItemsStore(make_items())
        store.update_status("a", ItemStatus.ERROR, "Too short")
        store.attach_content("a", GeneratedContent(title="T", slug="t"))
        item = store.get("a")
        assert item.status == ItemStatus.ERROR
        assert item.generated_content is not None


class TestSubscribers:
    def test_actions_are_published(self) -> None:
        store = ItemsStore(make_items())
        actions: list[dict] = []
        store.subscribe(actions.append)

        store.update_status("a", ItemStatus.GENERATING, "Stage 1/7")
        store.set_content("a", GeneratedContent(title="T", slug="t"))

        assert [a["type"] for a in actions] == ["update_status", "set_content"]
        assert actions[0]["status"] == "generating"

    def test_unsubscribe(self) -> None:
        store = ItemsStore(make_items())
        actions: list[dict] = []
        unsubscribe = store.subscribe(actions.append)
        unsubscribe()
        store.update_status("a", ItemStatus.GENERATING, "x")
        assert actions == []

    def test_failing_listener_does_not_break_store(self) -> None:
        store = ItemsStore(make_items())

        def broken(action: dict) -> None:
            raise RuntimeError("boom")

        seen: list[dict] = []
        store.subscribe(broken)
        store.subscribe(seen.append)
        store.update_status("a", ItemStatus.GENERATING, "x")

        assert len(seen) == 1
        assert store.get("a").status == ItemStatus.GENERATING
