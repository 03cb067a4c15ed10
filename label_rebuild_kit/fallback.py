"""
Generic fallback pass for layouts with no recognized structure.
"""

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.boxed_barcode
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize
import label_rebuild_kit.postprocess


Normalizer = lrk.normalize.Normalizer
NormalizationResult = lrk.normalize.NormalizationResult

MIN_QR_SIZE_DOTS = lrk.config.MIN_QR_SIZE_DOTS
FALLBACK_QR_FLOOR_RATIO = lrk.config.FALLBACK_QR_FLOOR_RATIO


#============================================
def remove_aggregate_duplicates(session) -> list[str]:
	"""
	Drop monolithic text blocks that repeat separately emitted rows.

	Args:
		session: Label session.

	Returns:
		Ids of removed items.
	"""
	removed: list[str] = []
	aggregate = lrk.postprocess.find_duplicated_aggregate_text_item(session.items)
	if aggregate is not None:
		removed.append(aggregate.id)
	for item in lrk.postprocess.find_repeated_aggregate_items(session.items):
		if item.id not in removed:
			removed.append(item.id)
	if removed:
		session.remove_items(removed)
	return removed


#============================================
def strip_text_markers(items: list) -> int:
	"""
	Remove leading checkbox and bullet markers from text rows.

	Returns:
		Number of text items changed.
	"""
	changed = 0
	for item in lrk.items.texts_of(items):
		stripped = lrk.postprocess.strip_leading_marker(item.text)
		if stripped != item.text and stripped.strip():
			item.text = stripped
			changed += 1
	return changed


#============================================
def enforce_qr_floor(items: list, settings) -> int:
	"""
	Raise QR codes that are too small to scan on the active media.

	Returns:
		Number of QR items resized.
	"""
	max_qr = lrk.media.compute_max_qr_size_dots(settings)
	floor = lrk.media.clamp_qr_size(max(MIN_QR_SIZE_DOTS, round(max_qr * FALLBACK_QR_FLOOR_RATIO)), settings)
	changed = 0
	for item in lrk.items.items_of_type(items, "qr"):
		if item.size < floor:
			item.size = floor
			changed += 1
	return changed


#============================================
def enforce_photo_floors(items: list, settings) -> int:
	"""
	Apply token and barcode prominence floors to a barcode photo composition.

	Returns:
		Number of items resized.
	"""
	if not lrk.boxed_barcode.is_barcode_photo_composition(items):
		return 0
	floors = lrk.media.resolve_prominence_floors(settings)
	changed = 0
	for item in lrk.items.texts_of(items):
		token = str(item.text).strip()
		if len(token) == 1 and token.isalnum() and item.font_size < floors.token_font_size:
			item.font_size = floors.token_font_size
			changed += 1
	for barcode in lrk.items.items_of_type(items, "barcode"):
		if lrk.boxed_barcode.apply_prominence_floors(barcode, settings):
			changed += 1
	return changed


class GenericFallbackNormalizer(Normalizer):
	"""
	Deduplicates and clamps without changing the layout structure.
	"""

	name = "generic-fallback"

	def matches(self, items: list, bounds: dict) -> bool:
		return True

	async def apply(self, context) -> NormalizationResult:
		settings = context.settings
		removed = remove_aggregate_duplicates(context.session)
		changed = len(removed)
		changed += strip_text_markers(context.items)
		changed += enforce_qr_floor(context.items, settings)
		changed += enforce_photo_floors(context.items, settings)
		if not context.items:
			return NormalizationResult(self.name, changed > 0, True, "empty-items")
		snapshot = await context.refresh()
		for item in context.items:
			box = snapshot.bounds.get(item.id)
			if box is None or item.position_mode != "absolute":
				continue
			target_x, target_y = lrk.geometry.clamp_target(box, snapshot.preview, box.x, box.y)
			if lrk.geometry.shift_item_to(item, box, target_x, target_y):
				changed += 1
		context.log(f"Fallback normalization: removed={len(removed)} changed={changed}")
		return NormalizationResult(self.name, changed > 0, True, "fallback")
