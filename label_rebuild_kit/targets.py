"""
Batch-scoped symbol table and target reference resolution.
"""

# Standard Library
import dataclasses

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.items


LabelItem = lrk.items.LabelItem

SELECTED_POINTERS = frozenset({"selected", "current", "selection"})
FIRST_POINTERS = frozenset({"first"})
LAST_POINTERS = frozenset({"last", "latest", "newest", "recent"})


@dataclasses.dataclass
class BatchArena:
	"""
	Names minted while one action batch runs; discarded when it ends.
	"""
	virtual_ids: dict[str, str] = dataclasses.field(default_factory=dict)
	explicit_refs: dict[str, str] = dataclasses.field(default_factory=dict)
	added_count: int = 0
	last_added_id: str | None = None
	selection_snapshot: list[str] = dataclasses.field(default_factory=list)
	touched_ids: list[str] = dataclasses.field(default_factory=list)
	placed_ids: set[str] = dataclasses.field(default_factory=set)

	def register_added(self, item_id: str, reference: str | None = None) -> str:
		self.added_count += 1
		virtual_id = f"item-{self.added_count}"
		self.virtual_ids[virtual_id] = item_id
		if reference:
			self.explicit_refs[str(reference).strip()] = item_id
		self.last_added_id = item_id
		self.touch(item_id)
		return virtual_id

	def touch(self, item_id: str) -> None:
		if item_id not in self.touched_ids:
			self.touched_ids.append(item_id)

	def reset(self) -> None:
		self.virtual_ids.clear()
		self.explicit_refs.clear()
		self.added_count = 0
		self.last_added_id = None
		self.selection_snapshot = []
		self.touched_ids = []
		self.placed_ids = set()


class TargetResolver:
	"""
	Resolves symbolic references to live items.

	Resolution order: semantic pointers, batch-local names (virtual ids and
	explicit references), exact persistent ids, then numeric list indexes.
	"""

	def __init__(self, session, editor, arena: BatchArena):
		self.session = session
		self.editor = editor
		self.arena = arena

	def resolve(self, reference) -> LabelItem | None:
		if reference is None:
			return None
		if isinstance(reference, bool):
			return None
		if isinstance(reference, int):
			return self._resolve_index(reference)
		text = str(reference).strip()
		if not text:
			return None
		pointer = text.lower()
		if pointer in LAST_POINTERS:
			return self._resolve_last()
		if pointer in FIRST_POINTERS:
			return self.session.items[0] if self.session.items else None
		if pointer in SELECTED_POINTERS:
			selected = self.resolve_selected_ids()
			return self.session.find_item(selected[0]) if selected else None
		for table in (self.arena.explicit_refs, self.arena.virtual_ids):
			if text in table:
				item = self.session.find_item(table[text])
				if item is not None:
					return item
		item = self.session.find_item(text)
		if item is not None:
			return item
		if text.isdigit():
			return self._resolve_index(int(text))
		return None

	def resolve_action_target(self, action: dict) -> LabelItem | None:
		for key in ("itemId", "target"):
			if key in action and action[key] is not None:
				return self.resolve(action[key])
		if "itemIndex" in action:
			try:
				return self._resolve_index(int(action["itemIndex"]))
			except (TypeError, ValueError):
				return None
		return self.resolve("selected")

	def resolve_many(self, references) -> list[str]:
		if isinstance(references, (str, int)):
			references = [references]
		resolved: list[str] = []
		for reference in references or []:
			item = self.resolve(reference)
			if item is not None and item.id not in resolved:
				resolved.append(item.id)
		return resolved

	def resolve_selected_ids(self) -> list[str]:
		live_ids = set(self.session.item_ids())
		selected = [item_id for item_id in self.editor.get_selected_item_ids() if item_id in live_ids]
		if selected:
			return selected
		# selection reads may lag one render cycle behind select_items
		return [item_id for item_id in self.arena.selection_snapshot if item_id in live_ids]

	def _resolve_last(self) -> LabelItem | None:
		if self.arena.last_added_id is not None:
			item = self.session.find_item(self.arena.last_added_id)
			if item is not None:
				return item
		return self.session.items[-1] if self.session.items else None

	def _resolve_index(self, index: int) -> LabelItem | None:
		if 0 <= index < len(self.session.items):
			return self.session.items[index]
		return None
