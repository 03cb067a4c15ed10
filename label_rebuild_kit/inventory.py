"""
Inventory-card pattern: article name, article number and storage place.
"""

# Standard Library
import re

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize
import label_rebuild_kit.postprocess


TextItem = lrk.items.TextItem
QrItem = lrk.items.QrItem
Normalizer = lrk.normalize.Normalizer
NormalizationResult = lrk.normalize.NormalizationResult

MIN_FONT_SIZE = lrk.config.MIN_FONT_SIZE
MIN_QR_SIZE_DOTS = lrk.config.MIN_QR_SIZE_DOTS
REFERENCE_PRINT_AREA = lrk.config.REFERENCE_PRINT_AREA
DEFAULT_FONT_FAMILY = lrk.config.DEFAULT_FONT_FAMILY
INVENTORY_QR_RATIO = lrk.config.INVENTORY_QR_RATIO
INVENTORY_ROW_FRACTIONS = lrk.config.INVENTORY_ROW_FRACTIONS
INVENTORY_TEXT_X_RATIO = lrk.config.INVENTORY_TEXT_X_RATIO
INVENTORY_QR_GAP_RATIO = lrk.config.INVENTORY_QR_GAP_RATIO
INVENTORY_MIN_QR_GAP = lrk.config.INVENTORY_MIN_QR_GAP
INVENTORY_FONT_SIZES = lrk.config.INVENTORY_FONT_SIZES
INVENTORY_HEADINGS = lrk.config.INVENTORY_HEADINGS
INVENTORY_PLACEMENT_RETRIES = lrk.config.INVENTORY_PLACEMENT_RETRIES

FIELD_PATTERNS = {
	"name": re.compile(r"^artikelname\s*:\s*(.*)$", re.IGNORECASE),
	"number": re.compile(r"^artikelnummer\s*:\s*(.*)$", re.IGNORECASE),
	"storage": re.compile(r"^lagerplatz\s*:\s*(.*)$", re.IGNORECASE),
}


#============================================
def extract_inventory_fields(texts: list[TextItem]) -> dict[str, str] | None:
	"""
	Read the three labeled inventory fields from text items.

	A value may follow its label on the same line or on the next line.

	Args:
		texts: Text items in list order.

	Returns:
		Dict with name, number and storage, or None if a label is missing.
	"""
	joined = "\n".join(str(item.text or "") for item in texts)
	lines = [line.strip() for line in joined.split("\n")]
	fields: dict[str, str] = {}
	for index, line in enumerate(lines):
		for key, pattern in FIELD_PATTERNS.items():
			if key in fields:
				continue
			match = pattern.match(line)
			if not match:
				continue
			value = match.group(1).strip()
			if not value:
				value = _next_value_line(lines, index)
			fields[key] = value
	if len(fields) != len(FIELD_PATTERNS):
		return None
	return fields


#============================================
def _next_value_line(lines: list[str], index: int) -> str:
	for line in lines[index + 1:]:
		if not line:
			continue
		if any(pattern.match(line) for pattern in FIELD_PATTERNS.values()):
			return ""
		return line
	return ""


#============================================
def build_inventory_template(session, fields: dict[str, str], qr_data: str, qr_size: int) -> list:
	"""
	Create the canonical six-row inventory card plus its QR code.

	Headings are underlined regular rows, values are bold rows, and the
	article name value is underlined together with its heading.

	Args:
		session: Session used to mint item ids.
		fields: Extracted inventory fields.
		qr_data: QR payload.
		qr_size: QR edge in dots.

	Returns:
		New item list.
	"""
	media = lrk.media.resolve_media(session.settings.media)
	scale = min(1.0, media.print_area / REFERENCE_PRINT_AREA)
	rows = (
		(INVENTORY_HEADINGS[0], True),
		(fields["name"], False),
		(INVENTORY_HEADINGS[1], True),
		(fields["number"], False),
		(INVENTORY_HEADINGS[2], True),
		(fields["storage"], False),
	)
	template = []
	for index, (text, is_heading) in enumerate(rows):
		font_size = max(MIN_FONT_SIZE, round(INVENTORY_FONT_SIZES[index] * scale))
		template.append(TextItem(
			session.next_item_id("text"),
			position_mode="absolute",
			x_offset=0,
			y_offset=0,
			text=text,
			font_family=DEFAULT_FONT_FAMILY,
			font_size=font_size,
			text_bold=not is_heading,
			text_underline=is_heading or index == 1,
		))
	template.append(QrItem(
		session.next_item_id("qr"),
		position_mode="absolute",
		x_offset=0,
		y_offset=0,
		data=qr_data,
		size=qr_size,
		qr_error_correction_level="M",
	))
	return template


class InventoryCardNormalizer(Normalizer):
	"""
	Rewrites inventory cards into the fixed six-row template.
	"""

	name = "inventory-card"

	def matches(self, items: list, bounds: dict) -> bool:
		texts = lrk.items.texts_of(items)
		if not texts or not lrk.items.items_of_type(items, "qr"):
			return False
		return extract_inventory_fields(texts) is not None

	async def apply(self, context) -> NormalizationResult:
		items = context.items
		fields = extract_inventory_fields(lrk.items.texts_of(items))
		if fields is None:
			return NormalizationResult(self.name, False, True, "fields-missing")
		qr_data = fields["number"]
		for qr in lrk.items.items_of_type(items, "qr"):
			if str(qr.data).strip():
				qr_data = qr.data
				break
		max_qr = lrk.media.compute_max_qr_size_dots(context.settings)
		qr_size = lrk.media.clamp_qr_size(max(MIN_QR_SIZE_DOTS, round(max_qr * INVENTORY_QR_RATIO)), context.settings)
		template = build_inventory_template(context.session, fields, qr_data, qr_size)
		context.session.replace_items(template)
		context.editor.set_selected_item_ids([])
		text_items = template[:-1]
		qr_item = template[-1]
		text_placed = await self._place_text_rows(context, text_items)
		qr_placed = await self._place_qr(context, text_items, qr_item)
		context.log(f"Inventory card placed: text={text_placed} qr={qr_placed}")
		return NormalizationResult(self.name, True, text_placed and qr_placed, "inventory-template")

	async def _place_text_rows(self, context, text_items: list) -> bool:
		ids = [item.id for item in text_items]
		for _attempt in range(1 + INVENTORY_PLACEMENT_RETRIES):
			snapshot = await context.refresh(ids)
			if snapshot.missing_ids:
				continue
			preview = lrk.postprocess.resolve_preview_size(snapshot.preview)
			target_x = round(preview.height * INVENTORY_TEXT_X_RATIO)
			for item, fraction in zip(text_items, INVENTORY_ROW_FRACTIONS):
				box = snapshot.bounds[item.id]
				target_y = round(preview.height * fraction)
				clamped_x, clamped_y = lrk.geometry.clamp_target(box, preview, target_x, target_y)
				lrk.geometry.shift_item_to(item, box, clamped_x, clamped_y)
			return True
		return False

	async def _place_qr(self, context, text_items: list, qr_item: QrItem) -> bool:
		for _attempt in range(1 + INVENTORY_PLACEMENT_RETRIES):
			snapshot = await context.refresh()
			if snapshot.missing_ids:
				continue
			preview = lrk.postprocess.resolve_preview_size(snapshot.preview)
			text_right = max(snapshot.bounds[item.id].right for item in text_items)
			gap = max(INVENTORY_MIN_QR_GAP, round(preview.height * INVENTORY_QR_GAP_RATIO))
			if not preview.extendable:
				available = int(preview.width - text_right - 2 * gap)
				if qr_item.size > available:
					shrunk = lrk.media.clamp_qr_size(max(MIN_QR_SIZE_DOTS, available), context.settings)
					if shrunk < qr_item.size:
						qr_item.size = shrunk
						continue
			box = snapshot.bounds[qr_item.id]
			target_x = text_right + gap
			if not preview.extendable:
				target_x = max(target_x, preview.width - box.width - gap)
			target_y = max(0, round((preview.height - box.height) / 2.0))
			lrk.geometry.shift_item_to(qr_item, box, target_x, target_y)
			inside = box.bottom <= preview.height + 0.5
			if not preview.extendable:
				inside = inside and box.right <= preview.width + 0.5
			return inside and box.x >= text_right + gap - 0.5
		return False
