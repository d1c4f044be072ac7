"""
Rundown index: flattens the segment/group/item tree into the canonical
navigable sequence and answers positional questions about it.

The index is rebuilt from scratch on every rundown change; nothing in it is
patched incrementally.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import Group, Item, ItemKind, Rundown, Segment


def is_navigable(item: Item) -> bool:
    """Whether an item may occupy the LIVE/PREVIEW pointers."""
    if item.kind in (ItemKind.PRESENTER_NOTE, ItemKind.MANUAL_BLOCK):
        return False
    if item.is_auto_overlay:
        return False
    return True


def build(rundown: Rundown) -> List[Item]:
    """Return the navigable items of a rundown in document order."""
    return [
        item
        for segment in rundown.segments
        for group in segment.groups
        for item in group.items
        if is_navigable(item)
    ]


@dataclass(frozen=True)
class ItemLocation:
    segment: Segment
    group: Group
    position: int  # index within group.items
    order: int  # index within all_items


class RundownIndex:
    """
    Read-only view over one rundown snapshot.

    `items` is the navigable sequence used by advance(); `all_items` keeps
    every top-level item (notes, manual blocks, auto overlays included) in
    document order for history replay.
    """

    def __init__(self, rundown: Optional[Rundown] = None):
        self.rundown = rundown or Rundown()
        self.items: List[Item] = build(self.rundown)
        self.all_items: List[Item] = []
        self._positions: Dict[str, int] = {}
        self._locations: Dict[str, ItemLocation] = {}
        self._manual_items: Dict[str, Item] = {}
        self._manual_parents: Dict[str, str] = {}
        self._groups: List[Tuple[Segment, Group]] = []

        for segment in self.rundown.segments:
            for group in segment.groups:
                self._groups.append((segment, group))
                for position, item in enumerate(group.items):
                    self._locations.setdefault(
                        item.id, ItemLocation(segment, group, position, len(self.all_items))
                    )
                    self.all_items.append(item)
                    if item.kind == ItemKind.MANUAL_BLOCK:
                        for child in item.manual_items:
                            self._manual_items.setdefault(child.id, child)
                            self._manual_parents.setdefault(child.id, item.id)

        for position, item in enumerate(self.items):
            self._positions.setdefault(item.id, position)

    @classmethod
    def build(cls, rundown: Rundown) -> "RundownIndex":
        return cls(rundown)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._positions

    # === Navigable sequence ===

    def index_of(self, item_id: Optional[str]) -> Optional[int]:
        if item_id is None:
            return None
        return self._positions.get(item_id)

    def get(self, item_id: Optional[str]) -> Optional[Item]:
        position = self.index_of(item_id)
        return self.items[position] if position is not None else None

    def first(self) -> Optional[Item]:
        return self.items[0] if self.items else None

    def second(self) -> Optional[Item]:
        return self.items[1] if len(self.items) > 1 else None

    def next_after(self, item_id: Optional[str]) -> Optional[Item]:
        """The navigable item immediately after item_id, or None at the end/if unknown."""
        position = self.index_of(item_id)
        if position is None or position + 1 >= len(self.items):
            return None
        return self.items[position + 1]

    # === Whole-document lookups ===

    def find(self, item_id: Optional[str]) -> Optional[Item]:
        """Any item by id: top-level items first, then manual block children."""
        if item_id is None:
            return None
        location = self._locations.get(item_id)
        if location is not None:
            return location.group.items[location.position]
        return self._manual_items.get(item_id)

    def segment_of(self, item_id: Optional[str]) -> Optional[Segment]:
        location = self._locations.get(item_id) if item_id else None
        return location.segment if location else None

    def group_of(self, item_id: Optional[str]) -> Optional[Group]:
        location = self._locations.get(item_id) if item_id else None
        return location.group if location else None

    def upcoming_group(self, item_id: Optional[str]) -> Tuple[Optional[Segment], Optional[Group]]:
        """The group after the one holding item_id, crossing segment boundaries."""
        group = self.group_of(item_id)
        if group is None:
            return None, None
        for position, (_, candidate) in enumerate(self._groups):
            if candidate is group:
                if position + 1 < len(self._groups):
                    return self._groups[position + 1]
                break
        return None, None

    def child_overlays(self, parent_id: Optional[str]) -> List[Item]:
        """Automatic overlays immediately following the parent in its group.

        Scanning stops at the first sibling that is not an overlay; manual
        overlays in that run are skipped but do not end it.
        """
        location = self._locations.get(parent_id) if parent_id else None
        if location is None:
            return []
        overlays = []
        for item in location.group.items[location.position + 1:]:
            if item.kind != ItemKind.OVERLAY:
                break
            if item.is_auto_overlay:
                overlays.append(item)
        return overlays

    def presenter_note_for(self, item_id: Optional[str]) -> Optional[dict]:
        """Next presenter note at or after item_id in document order."""
        location = self._locations.get(item_id) if item_id else None
        if location is None:
            return None
        start = location.order
        for position in range(start, len(self.all_items)):
            item = self.all_items[position]
            if item.kind == ItemKind.PRESENTER_NOTE:
                return {
                    "item_id": item.id,
                    "note": item.note_text,
                    "is_current": position == start + 1,
                }
        return None

    # === Manual blocks ===

    def manual_items(self) -> List[Item]:
        """Every manual block child in document order."""
        return [
            child
            for item in self.all_items
            if item.kind == ItemKind.MANUAL_BLOCK
            for child in item.manual_items
        ]

    def is_manual_item(self, item_id: Optional[str]) -> bool:
        return item_id is not None and item_id in self._manual_items

    def manual_block_of(self, item_id: str) -> Optional[str]:
        return self._manual_parents.get(item_id)

    def manual_buttons_for(self, item_id: Optional[str]) -> List[Item]:
        """Manual block children in the group holding item_id."""
        group = self.group_of(item_id)
        if group is None:
            return []
        return [
            child
            for item in group.items
            if item.kind == ItemKind.MANUAL_BLOCK
            for child in item.manual_items
        ]
