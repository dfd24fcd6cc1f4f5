"""
Unit tests for the block registry and the in-memory block document
"""
from datetime import datetime, timezone

import pytest

from storefront.core.errors import ValidationError
from storefront.domain.page import PageBlock
from storefront.services.block_document import BlockDocument, set_nested_value
from storefront.services.block_registry import (
    BLOCK_REGISTRY,
    create_block,
    get_block_definition,
    get_blocks_by_category,
    is_container,
    validate_blocks,
)


def _block(block_id, block_type="text", **kwargs):
    return PageBlock(id=block_id, type=block_type, **kwargs)


def _ids(document):
    return [block.id for block in document.blocks]


class TestBlockRegistry:

    def test_every_definition_is_registered_in_a_known_category(self):
        grouped = get_blocks_by_category()

        assert set(grouped) == {"layout", "commerce", "content", "marketing"}
        assert sum(len(v) for v in grouped.values()) == len(BLOCK_REGISTRY)
        for block_type in ("hero", "featured-products", "countdown", "faq", "section", "column"):
            assert block_type in BLOCK_REGISTRY

    def test_unknown_block_type(self):
        with pytest.raises(ValidationError) as exc_info:
            get_block_definition("carousel-3d")

        assert exc_info.value.code == "UNKNOWN_BLOCK_TYPE"

    def test_create_block_copies_defaults(self):
        first = create_block("faq")
        first.content["items"].append({"id": "2", "question": "Q", "answer": "A"})

        second = create_block("faq")

        assert len(BLOCK_REGISTRY["faq"].default_content["items"]) == 1
        assert len(second.content["items"]) == 1
        assert first.id != second.id
        assert first.children is None

    def test_countdown_gets_end_date_a_week_out(self):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)

        block = create_block("countdown", now=now)

        assert block.content["endDate"].startswith("2025-06-08")

    def test_containers_start_with_children(self):
        assert is_container("columns")
        assert create_block("section").children == []

    def test_overrides_merge_over_defaults(self):
        block = create_block("hero", variant="split", overrides={"content": {"title": "Hello"}})

        assert block.variant == "split"
        assert block.content["title"] == "Hello"
        assert set(BLOCK_REGISTRY["hero"].default_content) <= set(block.content)

    def test_validate_blocks_rejects_duplicate_ids_in_children(self):
        raw = [
            {"id": "a", "type": "section", "children": [{"id": "b", "type": "text"}]},
            {"id": "b", "type": "text"},
        ]

        with pytest.raises(ValidationError) as exc_info:
            validate_blocks(raw)

        assert exc_info.value.code == "DUPLICATE_BLOCK_ID"

    def test_validate_blocks_rejects_malformed_structure(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_blocks([{"type": "text"}])

        assert exc_info.value.message == "Invalid block structure"
        assert exc_info.value.details["errors"]

    def test_validate_blocks_parses_dicts(self):
        blocks = validate_blocks([{"id": "a", "type": "hero", "content": {"title": "Hi"}}])

        assert isinstance(blocks[0], PageBlock)
        assert blocks[0].content["title"] == "Hi"


class TestSetNestedValue:

    def test_creates_intermediate_containers(self):
        data = {}

        set_nested_value(data, "content.items[1].title", "Second")

        assert data == {"content": {"items": [None, {"title": "Second"}]}}

    def test_overwrites_existing_value(self):
        data = {"content": {"title": "Old", "subtitle": "Keep"}}

        set_nested_value(data, "content.title", "New")

        assert data["content"] == {"title": "New", "subtitle": "Keep"}


class TestBlockDocument:

    def _document(self, *ids, **kwargs):
        return BlockDocument([_block(block_id) for block_id in ids], **kwargs)

    def test_add_records_history_and_selects(self):
        document = self._document("a")

        document.add_block(_block("b"))

        assert _ids(document) == ["a", "b"]
        assert document.blocks[1].order == 1
        assert document.selected_id == "b"
        assert document.is_dirty
        assert document.can_undo and not document.can_redo

    def test_undo_and_redo(self):
        document = self._document("a", "b")
        document.remove_block("a")

        document.undo()
        assert _ids(document) == ["a", "b"]
        assert document.can_redo

        document.redo()
        assert _ids(document) == ["b"]

    def test_new_edit_clears_redo(self):
        document = self._document("a", "b")
        document.remove_block("a")
        document.undo()

        document.add_block(_block("c"))

        assert not document.can_redo

    def test_history_is_bounded(self):
        document = self._document("a", history_limit=3)

        for i in range(5):
            document.add_block(_block(f"n{i}"))

        assert len(document.history.past) == 3

    def test_set_blocks_records_no_history(self):
        document = self._document("a")

        document.set_blocks([_block("x"), _block("y")])

        assert _ids(document) == ["x", "y"]
        assert not document.can_undo

    def test_locked_blocks_are_protected(self):
        document = BlockDocument([_block("a", locked=True), _block("b")])

        document.update_block("a", {"content": {"text": "changed"}})
        document.remove_block("a")
        document.move_block(0, 1)

        assert _ids(document) == ["a", "b"]
        assert document.blocks[0].content == {}
        assert not document.can_undo

        document.select_block("a")
        document.move_selected_blocks("down")

        assert _ids(document) == ["a", "b"]
        assert not document.can_undo

    def test_move_selected_blocks_respects_locks(self):
        # Arrange
        document = BlockDocument([_block("a"), _block("b", locked=True), _block("c"), _block("d")])
        document.select_all()

        # Act
        document.move_selected_blocks("up")

        # Assert
        assert _ids(document) == ["a", "b", "c", "d"]
        assert not document.can_undo

    def test_move_selected_blocks_never_crosses_locked_neighbour(self):
        document = BlockDocument([_block("a"), _block("b", locked=True), _block("c"), _block("d")])
        document.select_block("c")
        document.select_block("d", mode="add")

        document.move_selected_blocks("up")

        assert _ids(document) == ["a", "b", "c", "d"]

        document.select_block("a")
        document.move_selected_blocks("down")

        assert _ids(document) == ["a", "b", "c", "d"]

    def test_unknown_ids_are_no_ops(self):
        document = self._document("a")

        document.update_block("missing", {"variant": "x"})
        document.remove_block("missing")

        assert not document.can_undo

    def test_update_ignores_id_and_order(self):
        document = self._document("a", "b")

        document.update_block("a", {"id": "z", "order": 9, "variant": "wide"})

        assert document.blocks[0].id == "a"
        assert document.blocks[0].order == 0
        assert document.blocks[0].variant == "wide"

    def test_update_block_settings_merges(self):
        document = BlockDocument([_block("a", settings={"padding": 8, "align": "left"})])

        document.update_block_settings("a", {"align": "center"})

        assert document.blocks[0].settings == {"padding": 8, "align": "center"}

    def test_update_block_field_by_path(self):
        document = BlockDocument([_block("a", content={"items": [{"title": "One"}]})])

        document.update_block_field("a", "content.items[0].title", "Uno")

        assert document.blocks[0].content["items"][0]["title"] == "Uno"

    def test_duplicate_inserts_after_original(self):
        document = self._document("a", "b")

        copy = document.duplicate_block("a")

        assert _ids(document) == ["a", copy.id, "b"]
        assert document.selected_id == copy.id

    def test_move_selected_blocks_moves_group(self):
        document = self._document("a", "b", "c", "d")
        document.select_block("b")
        document.select_block("c", mode="add")

        document.move_selected_blocks("up")

        assert _ids(document) == ["b", "c", "a", "d"]

    def test_move_selected_blocks_stops_at_edge(self):
        document = self._document("a", "b", "c")
        document.select_block("c")

        document.move_selected_blocks("down")

        assert _ids(document) == ["a", "b", "c"]
        assert not document.can_undo

    def test_toggle_selection(self):
        document = self._document("a", "b")
        document.select_all()

        document.select_block("a", mode="toggle")

        assert document.selected_ids == ["b"]

    def test_selecting_unknown_block_is_ignored(self):
        document = self._document("a", "b")
        document.select_block("a")

        document.select_block("ghost")
        document.select_block("ghost", mode="add")
        document.select_block("ghost", mode="toggle")

        assert document.selected_ids == ["a"]

    def test_duplicate_selected_blocks_after_last_selected(self):
        document = self._document("a", "b", "c")
        document.select_block("a")
        document.select_block("b", mode="add")

        copies = document.duplicate_selected_blocks()

        assert _ids(document) == ["a", "b", copies[0].id, copies[1].id, "c"]

    def test_remove_selected_skips_locked(self):
        document = BlockDocument([_block("a"), _block("b", locked=True), _block("c")])
        document.select_all()

        document.remove_selected_blocks()

        assert _ids(document) == ["b"]

    def test_copy_and_paste_after_selection(self):
        document = self._document("a", "b")
        document.copy_block("b")
        document.select_block("a")

        pasted = document.paste_block()

        assert _ids(document) == ["a", pasted.id, "b"]
        assert pasted.id != "b"

    def test_container_children(self):
        document = BlockDocument([create_block("section")])
        section_id = document.blocks[0].id

        document.add_block_to_container(section_id, _block("x"))
        document.add_block_to_container(section_id, _block("y"), index=0)

        children = document.blocks[0].children
        assert [c.id for c in children] == ["y", "x"]
        assert children[1].parent_id == section_id
        assert document.get_block("x") is not None

        document.remove_block_from_container(section_id, "y")
        assert [c.id for c in document.blocks[0].children] == ["x"]

    def test_add_to_non_container_is_ignored(self):
        document = self._document("a")

        document.add_block_to_container("a", _block("x"))

        assert document.blocks[0].children is None
        assert not document.can_undo

    def test_visibility_toggle_allowed_on_locked(self):
        document = BlockDocument([_block("a", locked=True)])

        document.toggle_block_visibility("a")

        assert document.blocks[0].visible is False

    def test_mark_clean(self):
        document = self._document("a")
        document.add_block(_block("b"))

        document.mark_clean()

        assert document.is_dirty is False
        assert document.to_list()[1]["id"] == "b"
