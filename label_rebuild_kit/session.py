"""
In-memory label session: the ordered item list and its settings.
"""

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.changes
import label_rebuild_kit.config
import label_rebuild_kit.items


LabelSettings = lrk.config.LabelSettings
LabelItem = lrk.items.LabelItem
create_item = lrk.items.create_item


class LabelSession:
	"""
	Owns the single item list of a label and mints persistent item ids.
	"""

	def __init__(self, settings: LabelSettings | None = None):
		self.settings = settings if settings is not None else LabelSettings()
		self.items: list[LabelItem] = []
		self._id_counter = 0

	def next_item_id(self, item_type: str) -> str:
		self._id_counter += 1
		return f"{item_type}-{self._id_counter}"

	def add_item(self, item_type: str, shape_type: str = "rect") -> LabelItem:
		item = create_item(item_type, self.next_item_id(item_type), self.settings, shape_type)
		self.items.append(item)
		return item

	def add_text_item(self) -> LabelItem:
		return self.add_item("text")

	def add_qr_item(self) -> LabelItem:
		return self.add_item("qr")

	def add_barcode_item(self) -> LabelItem:
		return self.add_item("barcode")

	def add_shape_item(self, shape_type: str = "rect") -> LabelItem:
		return self.add_item("shape", shape_type)

	def add_image_item(self) -> LabelItem:
		return self.add_item("image")

	def add_icon_item(self) -> LabelItem:
		return self.add_item("icon")

	def find_item(self, item_id: str) -> LabelItem | None:
		for item in self.items:
			if item.id == item_id:
				return item
		return None

	def item_ids(self) -> list[str]:
		return [item.id for item in self.items]

	def remove_items(self, item_ids: list[str]) -> int:
		drop = set(item_ids)
		before = len(self.items)
		self.items = [item for item in self.items if item.id not in drop]
		return before - len(self.items)

	def replace_items(self, items: list[LabelItem]) -> None:
		self.items = list(items)

	def clear_items(self) -> None:
		self.items = []

	def to_dict(self) -> dict:
		return {
			"media": self.settings.media,
			"resolution": self.settings.resolution,
			"mediaLengthMm": self.settings.media_length_mm,
			"orientation": self.settings.orientation,
			"items": [item.to_dict() for item in self.items],
		}


#============================================
def load_items(session: LabelSession, raw_items: list[dict]) -> list[str]:
	"""
	Append items described by wire dicts to a session.

	Args:
		session: Target session.
		raw_items: Item dicts with a "type" key and wire fields.

	Returns:
		List of unknown field names encountered.
	"""
	unknown: list[str] = []
	for raw in raw_items:
		item_type = str(raw.get("type", "text")).strip().lower()
		shape_type = str(raw.get("shapeType", "rect"))
		item = session.add_item(item_type, shape_type)
		changes = {key: value for key, value in raw.items() if key not in ("id", "type")}
		report = lrk.changes.apply_item_changes(item, changes, session.settings)
		unknown.extend(report.unknown)
	return unknown
