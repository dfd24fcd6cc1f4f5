"""
Block Document - in-memory page-builder document with undo/redo

Holds the block list a merchant is editing, the current selection and a
bounded history. Every mutating operation:

- snapshots the previous block list onto history.past (oldest entries
  dropped beyond the history limit)
- clears history.future
- marks the document dirty
- renumbers top-level `order` to list indices

Operations that reference an unknown block id, or a locked block, leave
the document and its history untouched.
"""
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from storefront.core.config import settings
from storefront.domain.page import PageBlock
from storefront.services.block_registry import create_block, is_container

SelectMode = Literal["replace", "add", "toggle"]

_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


def set_nested_value(obj: Dict[str, Any], path: str, value: Any) -> None:
    """
    Set `value` at a dotted/indexed path, creating intermediate containers

    >>> data = {}
    >>> set_nested_value(data, "settings.items[0].title", "Hi")
    >>> data
    {'settings': {'items': [{'title': 'Hi'}]}}
    """
    parts = _INDEX_PATTERN.sub(r".\1", path).split(".")
    current: Any = obj

    for i, key in enumerate(parts[:-1]):
        next_is_index = parts[i + 1].isdigit()
        if isinstance(current, list):
            index = int(key)
            while len(current) <= index:
                current.append(None)
            if current[index] is None:
                current[index] = [] if next_is_index else {}
            current = current[index]
        else:
            if current.get(key) is None:
                current[key] = [] if next_is_index else {}
            current = current[key]

    last = parts[-1]
    if isinstance(current, list):
        index = int(last)
        while len(current) <= index:
            current.append(None)
        current[index] = value
    else:
        current[last] = value


def _new_id() -> str:
    return str(uuid.uuid4())


def _snapshot(blocks: List[PageBlock]) -> List[PageBlock]:
    return [block.model_copy(deep=True) for block in blocks]


def _renumber(blocks: List[PageBlock]) -> List[PageBlock]:
    for i, block in enumerate(blocks):
        block.order = i
    return blocks


def _find_in_tree(blocks: List[PageBlock], block_id: str) -> Optional[PageBlock]:
    for block in blocks:
        if block.id == block_id:
            return block
        if block.children:
            found = _find_in_tree(block.children, block_id)
            if found is not None:
                return found
    return None


@dataclass
class History:
    past: List[List[PageBlock]] = field(default_factory=list)
    future: List[List[PageBlock]] = field(default_factory=list)


class BlockDocument:
    """Editable block list with selection, clipboard and undo/redo"""

    def __init__(self, blocks: Optional[List[PageBlock]] = None, history_limit: Optional[int] = None):
        self.blocks: List[PageBlock] = _renumber(_snapshot(blocks or []))
        self.selected_ids: List[str] = []
        self.is_dirty = False
        self.history = History()
        self.history_limit = history_limit or settings.EDITOR_HISTORY_LIMIT
        self.clipboard: Optional[PageBlock] = None

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _commit(self, new_blocks: List[PageBlock], renumber: bool = True):
        past = self.history.past + [self.blocks]
        self.history = History(past=past[-self.history_limit:], future=[])
        self.blocks = _renumber(new_blocks) if renumber else new_blocks
        self.is_dirty = True

    def _index(self, block_id: str) -> int:
        for i, block in enumerate(self.blocks):
            if block.id == block_id:
                return i
        return -1

    def _editable_index(self, block_id: str) -> int:
        """Index of an unlocked top-level block, else -1"""
        index = self._index(block_id)
        if index == -1 or self.blocks[index].locked:
            return -1
        return index

    def _replace_at(self, index: int, **changes) -> None:
        new_blocks = _snapshot(self.blocks)
        new_blocks[index] = new_blocks[index].model_copy(update=changes)
        self._commit(new_blocks)

    @property
    def selected_id(self) -> Optional[str]:
        return self.selected_ids[-1] if self.selected_ids else None

    def get_block(self, block_id: str) -> Optional[PageBlock]:
        return _find_in_tree(self.blocks, block_id)

    # ------------------------------------------------------------------
    # whole document
    # ------------------------------------------------------------------

    def set_blocks(self, blocks: List[PageBlock]):
        """Load blocks without recording history"""
        self.blocks = _renumber(_snapshot(blocks))
        self.selected_ids = []

    def mark_clean(self):
        self.is_dirty = False

    # ------------------------------------------------------------------
    # single block edits
    # ------------------------------------------------------------------

    def add_block(self, block: PageBlock):
        new_blocks = _snapshot(self.blocks)
        new_blocks.append(block.model_copy(deep=True))
        self._commit(new_blocks)
        self.selected_ids = [block.id]

    def add_block_by_type(self, block_type: str, variant: Optional[str] = None) -> PageBlock:
        block = create_block(block_type, variant=variant)
        self.add_block(block)
        return block

    def update_block(self, block_id: str, updates: Dict[str, Any]):
        index = self._editable_index(block_id)
        if index == -1:
            return
        changes = {k: v for k, v in updates.items() if k not in ("id", "order")}
        self._replace_at(index, **changes)

    def update_block_settings(self, block_id: str, block_settings: Dict[str, Any]):
        index = self._editable_index(block_id)
        if index == -1:
            return
        merged = {**self.blocks[index].settings, **block_settings}
        self._replace_at(index, settings=merged)

    def update_block_field(self, block_id: str, path: str, value: Any):
        """Inline edit of one field, e.g. path "content.items[0].title" """
        index = self._editable_index(block_id)
        if index == -1:
            return
        data = self.blocks[index].model_dump()
        set_nested_value(data, path, value)
        new_blocks = _snapshot(self.blocks)
        new_blocks[index] = PageBlock.model_validate(data)
        self._commit(new_blocks)

    def change_block_variant(self, block_id: str, variant: str):
        index = self._editable_index(block_id)
        if index == -1:
            return
        self._replace_at(index, variant=variant)

    def toggle_block_visibility(self, block_id: str):
        index = self._index(block_id)
        if index == -1:
            return
        self._replace_at(index, visible=not self.blocks[index].visible)

    def toggle_block_lock(self, block_id: str):
        index = self._index(block_id)
        if index == -1:
            return
        self._replace_at(index, locked=not self.blocks[index].locked)

    def move_block(self, from_index: int, to_index: int):
        if not (0 <= from_index < len(self.blocks)) or not (0 <= to_index < len(self.blocks)):
            return
        if from_index == to_index or self.blocks[from_index].locked:
            return
        new_blocks = _snapshot(self.blocks)
        moved = new_blocks.pop(from_index)
        new_blocks.insert(to_index, moved)
        self._commit(new_blocks)

    def remove_block(self, block_id: str):
        index = self._editable_index(block_id)
        if index == -1:
            return
        new_blocks = _snapshot(self.blocks)
        del new_blocks[index]
        self._commit(new_blocks)
        self.selected_ids = [i for i in self.selected_ids if i != block_id]

    def duplicate_block(self, block_id: str) -> Optional[PageBlock]:
        index = self._index(block_id)
        if index == -1:
            return None
        duplicate = self.blocks[index].model_copy(deep=True, update={"id": _new_id(), "locked": False})
        new_blocks = _snapshot(self.blocks)
        new_blocks.insert(index + 1, duplicate)
        self._commit(new_blocks)
        self.selected_ids = [duplicate.id]
        return duplicate

    # ------------------------------------------------------------------
    # selection
    # ------------------------------------------------------------------

    def select_block(self, block_id: Optional[str], mode: SelectMode = "replace"):
        if block_id is None:
            self.selected_ids = []
            return
        if self.get_block(block_id) is None:
            return

        if mode == "replace":
            self.selected_ids = [block_id]
        elif mode == "add":
            if block_id not in self.selected_ids:
                self.selected_ids = self.selected_ids + [block_id]
        elif mode == "toggle":
            if block_id in self.selected_ids:
                self.selected_ids = [i for i in self.selected_ids if i != block_id]
            else:
                self.selected_ids = self.selected_ids + [block_id]

    def select_all(self):
        self.selected_ids = [block.id for block in self.blocks]

    def clear_selection(self):
        self.selected_ids = []

    # ------------------------------------------------------------------
    # multi-select operations
    # ------------------------------------------------------------------

    def _selected_indices(self) -> List[int]:
        indices = [self._index(block_id) for block_id in self.selected_ids]
        return sorted(i for i in indices if i != -1)

    def duplicate_selected_blocks(self) -> List[PageBlock]:
        """Copies are inserted, in document order, after the last selected block"""
        indices = self._selected_indices()
        if not indices:
            return []

        copies = [
            self.blocks[i].model_copy(deep=True, update={"id": _new_id(), "locked": False})
            for i in indices
        ]
        new_blocks = _snapshot(self.blocks)
        insert_at = indices[-1] + 1
        new_blocks[insert_at:insert_at] = copies
        self._commit(new_blocks)
        self.selected_ids = [block.id for block in copies]
        return copies

    def remove_selected_blocks(self):
        removable = {
            self.blocks[i].id for i in self._selected_indices() if not self.blocks[i].locked
        }
        if not removable:
            return
        new_blocks = [b for b in _snapshot(self.blocks) if b.id not in removable]
        self._commit(new_blocks)
        self.selected_ids = []

    def move_selected_blocks(self, direction: Literal["up", "down"]):
        """
        Move every selected block one step; selected neighbours move as a group

        Nothing moves when the group already touches the edge. Locked blocks
        stay put and nothing is moved across them.
        """
        indices = [i for i in self._selected_indices() if not self.blocks[i].locked]
        if not indices:
            return
        if direction == "up" and indices[0] == 0:
            return
        if direction == "down" and indices[-1] == len(self.blocks) - 1:
            return

        moving = {self.blocks[i].id for i in indices}
        new_blocks = _snapshot(self.blocks)
        step = -1 if direction == "up" else 1

        for idx in (indices if direction == "up" else reversed(indices)):
            neighbour = new_blocks[idx + step]
            if neighbour.id in moving or neighbour.locked:
                continue
            new_blocks[idx + step], new_blocks[idx] = new_blocks[idx], neighbour

        if [b.id for b in new_blocks] == [b.id for b in self.blocks]:
            return
        self._commit(new_blocks)

    def lock_selected_blocks(self, locked: bool = True):
        indices = self._selected_indices()
        if not indices:
            return
        new_blocks = _snapshot(self.blocks)
        for i in indices:
            new_blocks[i].locked = locked
        self._commit(new_blocks)

    # ------------------------------------------------------------------
    # clipboard
    # ------------------------------------------------------------------

    def copy_block(self, block_id: str):
        block = self.get_block(block_id)
        if block is None:
            return
        self.clipboard = block.model_copy(deep=True)

    def paste_block(self) -> Optional[PageBlock]:
        """Insert the clipboard block after the selected block, or at the end"""
        if self.clipboard is None:
            return None

        insert_at = len(self.blocks)
        if self.selected_id is not None:
            selected_index = self._index(self.selected_id)
            if selected_index != -1:
                insert_at = selected_index + 1

        pasted = self.clipboard.model_copy(
            deep=True, update={"id": _new_id(), "locked": False, "parent_id": None}
        )
        new_blocks = _snapshot(self.blocks)
        new_blocks.insert(insert_at, pasted)
        self._commit(new_blocks)
        self.selected_ids = [pasted.id]
        return pasted

    # ------------------------------------------------------------------
    # containers
    # ------------------------------------------------------------------

    def add_block_to_container(self, container_id: str, block: PageBlock, index: Optional[int] = None):
        new_blocks = _snapshot(self.blocks)
        container = _find_in_tree(new_blocks, container_id)
        if container is None or not is_container(container.type):
            return

        children = list(container.children or [])
        child = block.model_copy(deep=True, update={"parent_id": container_id})
        position = len(children) if index is None else max(0, min(index, len(children)))
        children.insert(position, child)
        container.children = _renumber(children)

        self._commit(new_blocks)
        self.selected_ids = [block.id]

    def remove_block_from_container(self, container_id: str, block_id: str):
        new_blocks = _snapshot(self.blocks)
        container = _find_in_tree(new_blocks, container_id)
        if container is None or not container.children:
            return

        remaining = [c for c in container.children if c.id != block_id]
        if len(remaining) == len(container.children):
            return
        container.children = _renumber(remaining)

        self._commit(new_blocks)
        self.selected_ids = [i for i in self.selected_ids if i != block_id]

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self.history.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.history.future)

    def undo(self):
        if not self.history.past:
            return
        previous = self.history.past[-1]
        self.history = History(
            past=self.history.past[:-1],
            future=[self.blocks] + self.history.future,
        )
        self.blocks = previous
        self.is_dirty = True

    def redo(self):
        if not self.history.future:
            return
        following = self.history.future[0]
        self.history = History(
            past=(self.history.past + [self.blocks])[-self.history_limit:],
            future=self.history.future[1:],
        )
        self.blocks = following
        self.is_dirty = True

    def to_list(self) -> List[Dict[str, Any]]:
        return [block.model_dump() for block in self.blocks]
