"""
Selection surface and alignment of selected items.
"""

# Standard Library
import dataclasses

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.geometry


Bounds = lrk.geometry.Bounds

ALIGN_MODES = ("left", "center", "right", "top", "middle", "bottom")
REFERENCE_FRAMES = ("selection", "largest", "smallest", "label")


@dataclasses.dataclass
class AlignResult:
	changed: bool
	reason: str
	count: int = 0


#============================================
def resolve_reference_rect(
	boxes: list[Bounds],
	reference: str,
	preview_width: float,
	preview_height: float,
) -> Bounds | None:
	"""
	Pick the rectangle the selection is aligned against.

	Args:
		boxes: Bounds of the selected items.
		reference: One of REFERENCE_FRAMES.
		preview_width: Preview width for the label frame.
		preview_height: Preview height for the label frame.

	Returns:
		Reference Bounds, or None when no boxes are given.
	"""
	if reference == "label":
		return Bounds(0.0, 0.0, preview_width, preview_height)
	if not boxes:
		return None
	if reference == "largest":
		return max(boxes, key=lambda box: box.width * box.height)
	if reference == "smallest":
		return min(boxes, key=lambda box: box.width * box.height)
	return lrk.geometry.compute_union_bounds(boxes)


#============================================
def compute_alignment_delta(mode: str, box: Bounds, reference: Bounds) -> tuple[float, float]:
	"""
	Offset that aligns one box to the reference rectangle.

	Args:
		mode: One of ALIGN_MODES.
		box: Item bounds.
		reference: Reference rectangle.

	Returns:
		Tuple of (delta_x, delta_y).
	"""
	if mode == "left":
		return (reference.x - box.x, 0.0)
	if mode == "center":
		return (reference.center_x - box.center_x, 0.0)
	if mode == "right":
		return (reference.right - box.right, 0.0)
	if mode == "top":
		return (0.0, reference.y - box.y)
	if mode == "middle":
		return (0.0, reference.center_y - box.center_y)
	if mode == "bottom":
		return (0.0, reference.bottom - box.bottom)
	raise ValueError(f"Unknown align mode: {mode}")


class SelectionEditor:
	"""
	Editor collaborator holding the selection of a session.
	"""

	def __init__(self, session, renderer):
		self.session = session
		self.renderer = renderer
		self._selected_ids: list[str] = []

	def set_selected_item_ids(self, item_ids: list[str]) -> None:
		self._selected_ids = list(item_ids)

	def get_selected_item_ids(self) -> list[str]:
		live_ids = set(self.session.item_ids())
		return [item_id for item_id in self._selected_ids if item_id in live_ids]

	def align_selected_items(self, mode: str, reference: str = "selection") -> AlignResult:
		mode = str(mode or "").strip().lower()
		reference = str(reference or "selection").strip().lower()
		if mode not in ALIGN_MODES:
			return AlignResult(False, "invalid-mode")
		if reference not in REFERENCE_FRAMES:
			reference = "selection"
		selected = self.get_selected_item_ids()
		if not selected:
			return AlignResult(False, "no-selection")
		if len(selected) < 2 and reference != "label":
			return AlignResult(False, "need-multiple")
		entries = []
		for item_id in selected:
			box = self.renderer.bounds_by_id.get(item_id)
			item = self.session.find_item(item_id)
			if box is not None and item is not None:
				entries.append((item, box))
		preview = self.renderer.preview_size
		reference_rect = resolve_reference_rect(
			[box for _item, box in entries],
			reference,
			preview.width,
			preview.height,
		)
		count = 0
		for item, box in entries:
			delta_x, delta_y = compute_alignment_delta(mode, box, reference_rect)
			if abs(delta_x) < 0.5 and abs(delta_y) < 0.5:
				continue
			item.x_offset = round(item.x_offset + delta_x)
			item.y_offset = round(item.y_offset + delta_y)
			count += 1
		if count == 0:
			return AlignResult(False, "nothing-to-align")
		return AlignResult(True, "aligned", count)
