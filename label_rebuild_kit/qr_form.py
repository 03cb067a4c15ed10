"""
QR-form pattern: heading/value text rows beside a single QR code.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize
import label_rebuild_kit.postprocess


Bounds = lrk.geometry.Bounds
PreviewSize = lrk.geometry.PreviewSize
TextItem = lrk.items.TextItem
QrItem = lrk.items.QrItem
Normalizer = lrk.normalize.Normalizer
NormalizationResult = lrk.normalize.NormalizationResult

QR_FORM_MIN_TEXT_ITEMS = lrk.config.QR_FORM_MIN_TEXT_ITEMS
QR_FORM_MAX_TEXT_ITEMS = lrk.config.QR_FORM_MAX_TEXT_ITEMS
QR_FORM_MIN_HEADINGS = lrk.config.QR_FORM_MIN_HEADINGS
QR_FORM_MIN_ROW_GAP = lrk.config.QR_FORM_MIN_ROW_GAP
QR_FORM_ROW_GAP_RATIO = lrk.config.QR_FORM_ROW_GAP_RATIO
QR_FORM_FONT_FLOOR = lrk.config.QR_FORM_FONT_FLOOR
QR_FORM_MIN_DOWNSCALE = lrk.config.QR_FORM_MIN_DOWNSCALE
QR_FORM_RESIDUAL_DOWNSCALE = lrk.config.QR_FORM_RESIDUAL_DOWNSCALE
QR_FORM_COLUMN_GAP = lrk.config.QR_FORM_COLUMN_GAP
QR_FORM_QR_FLOOR_RATIO = lrk.config.QR_FORM_QR_FLOOR_RATIO
QR_FORM_QR_FLOOR_DOTS = lrk.config.QR_FORM_QR_FLOOR_DOTS
QR_FORM_MAX_PASSES = lrk.config.QR_FORM_MAX_PASSES

TOLERANCE = 0.5


@dataclasses.dataclass
class QrFormRoles:
	qr: QrItem
	qr_box: Bounds
	rows: list[tuple[TextItem, Bounds]]


@dataclasses.dataclass
class FitPass:
	did_mutate: bool = False
	needs_render: bool = False
	placement_resolved: bool = False


#============================================
def resolve_qr_form_roles(items: list, bounds: dict[str, Bounds]) -> QrFormRoles | None:
	"""
	Recognize a heading/value form laid out beside one QR code.

	Args:
		items: Item list.
		bounds: Rendered bounds by item id.

	Returns:
		QrFormRoles with rows sorted top to bottom, or None.
	"""
	qrs = lrk.items.items_of_type(items, "qr")
	if len(qrs) != 1 or lrk.items.items_of_type(items, "barcode"):
		return None
	texts = lrk.items.texts_of(items)
	if not QR_FORM_MIN_TEXT_ITEMS <= len(texts) <= QR_FORM_MAX_TEXT_ITEMS:
		return None
	qr = qrs[0]
	if any(item.position_mode != "absolute" for item in texts + [qr]):
		return None
	qr_box = bounds.get(qr.id)
	if qr_box is None:
		return None
	rows = [(item, bounds[item.id]) for item in texts if item.id in bounds]
	if len(rows) < QR_FORM_MIN_TEXT_ITEMS:
		return None
	headings = [item for item in texts if lrk.postprocess.is_heading_text(item.text)]
	if len(headings) < QR_FORM_MIN_HEADINGS:
		return None
	left_count = sum(1 for _item, box in rows if box.right <= qr_box.center_x)
	if left_count < math.ceil(len(rows) / 2):
		return None
	rows.sort(key=lambda row: (round(row[1].y), row[1].x))
	return QrFormRoles(qr, qr_box, rows)


#============================================
def compute_row_gap(font_size: float) -> int:
	"""
	Minimum vertical gap below a row, proportional to its font size.
	"""
	return max(QR_FORM_MIN_ROW_GAP, round(max(8.0, float(font_size)) * QR_FORM_ROW_GAP_RATIO))


#============================================
def unify_first_pair_underline(rows: list[tuple[TextItem, Bounds]]) -> bool:
	"""
	Give the first heading and its value row the same underline.

	Args:
		rows: Rows sorted top to bottom.

	Returns:
		True when an underline flag changed.
	"""
	for index, (item, _box) in enumerate(rows[:-1]):
		if not lrk.postprocess.is_heading_text(item.text):
			continue
		value_item = rows[index + 1][0]
		if item.text_underline == value_item.text_underline:
			return False
		item.text_underline = True
		value_item.text_underline = True
		return True
	return False


#============================================
def stack_rows(rows: list[tuple[TextItem, Bounds]], preview: PreviewSize, gaps: list[int]) -> bool:
	"""
	Shift rows into a top-to-bottom stack that ends inside the preview.

	Args:
		rows: Rows sorted top to bottom.
		preview: Preview extent.
		gaps: Gap below each row except the last.

	Returns:
		True when any row moved.
	"""
	required = sum(box.height for _item, box in rows) + sum(gaps)
	top = min(box.y for _item, box in rows)
	cursor = max(0.0, min(top, preview.height - required))
	moved = False
	for index, (item, box) in enumerate(rows):
		if lrk.geometry.shift_item_to(item, box, box.x, cursor):
			moved = True
		cursor = box.bottom
		if index < len(gaps):
			cursor += gaps[index]
	return moved


#============================================
def downscale_fonts(items: list[TextItem], scale: float) -> bool:
	"""
	Scale font sizes down, never below the form font floor.

	A scale below one always shrinks a font by at least one step unless
	it already sits on the floor.

	Args:
		items: Text items to shrink.
		scale: Factor in 0..1.

	Returns:
		True when any font size changed.
	"""
	changed = False
	for item in items:
		current = int(item.font_size)
		target = round(current * scale)
		if scale < 1.0 and target >= current:
			target = current - 1
		target = max(QR_FORM_FONT_FLOOR, target)
		if target < current:
			item.font_size = target
			changed = True
	return changed


#============================================
def fit_rows_vertically(roles: QrFormRoles, preview: PreviewSize) -> FitPass:
	"""
	Stack rows with proportional gaps, compressing or downscaling to fit.

	Args:
		roles: Recognized form roles.
		preview: Preview extent.

	Returns:
		FitPass describing what changed.
	"""
	rows = roles.rows
	heights = sum(box.height for _item, box in rows)
	gaps = [compute_row_gap(item.font_size) for item, _box in rows[:-1]]
	if heights + sum(gaps) <= preview.height + TOLERANCE:
		return FitPass(did_mutate=stack_rows(rows, preview, gaps))
	compressed = [QR_FORM_MIN_ROW_GAP] * (len(rows) - 1)
	required = heights + sum(compressed)
	if required <= preview.height + TOLERANCE:
		return FitPass(did_mutate=stack_rows(rows, preview, compressed))
	scale = max(QR_FORM_MIN_DOWNSCALE, min(1.0, preview.height / required))
	if downscale_fonts([item for item, _box in rows], scale):
		return FitPass(did_mutate=True, needs_render=True)
	# font floor reached, stack as tight as possible
	return FitPass(did_mutate=stack_rows(rows, preview, compressed))


#============================================
def column_text_right(roles: QrFormRoles) -> float:
	"""
	Right edge of the text rows that sit left of the QR center.
	"""
	left_rows = [box for _item, box in roles.rows if box.center_x < roles.qr_box.center_x]
	if not left_rows:
		return 0.0
	return max(box.right for box in left_rows)


#============================================
def resolve_column_overlap(roles: QrFormRoles, preview: PreviewSize, settings) -> FitPass:
	"""
	Separate the text column from the QR code.

	Tries, in order: shifting the QR right, shrinking the QR to its media
	floor while keeping its right edge, and downscaling the text rows.

	Args:
		roles: Recognized form roles.
		preview: Preview extent.
		settings: Active label settings.

	Returns:
		FitPass describing what changed.
	"""
	result = FitPass()
	qr = roles.qr
	qr_box = roles.qr_box
	clamped_x, clamped_y = lrk.geometry.clamp_target(qr_box, preview, qr_box.x, qr_box.y)
	if lrk.geometry.shift_item_to(qr, qr_box, clamped_x, clamped_y):
		result.did_mutate = True
	text_right = column_text_right(roles)
	overlap = text_right + QR_FORM_COLUMN_GAP - qr_box.x
	if overlap <= TOLERANCE:
		return result
	max_qr_x = math.inf if preview.extendable else preview.width - qr_box.width
	target_x = min(max_qr_x, qr_box.x + overlap)
	if target_x > qr_box.x + TOLERANCE:
		lrk.geometry.shift_item_to(qr, qr_box, target_x, qr_box.y)
		result.did_mutate = True
		overlap = text_right + QR_FORM_COLUMN_GAP - qr_box.x
		if overlap <= TOLERANCE:
			return result
	floor_size = lrk.media.clamp_qr_size(
		max(QR_FORM_QR_FLOOR_DOTS, round(preview.height * QR_FORM_QR_FLOOR_RATIO)),
		settings,
	)
	shrunk = max(floor_size, math.floor(qr.size - overlap))
	if shrunk < qr.size:
		# keep the right edge where it is
		qr.x_offset = round(qr.x_offset + (qr.size - shrunk))
		qr.size = shrunk
		result.did_mutate = True
		result.needs_render = True
		return result
	left_items = [item for item, box in roles.rows if box.center_x < qr_box.center_x]
	if downscale_fonts(left_items, QR_FORM_RESIDUAL_DOWNSCALE):
		result.did_mutate = True
		result.needs_render = True
	return result


#============================================
def check_placement(roles: QrFormRoles, preview: PreviewSize) -> bool:
	"""
	Verify row order, minimum gaps and QR containment.

	Args:
		roles: Form roles with up-to-date bounds.
		preview: Preview extent.

	Returns:
		True when the form layout is valid.
	"""
	boxes = [box for _item, box in roles.rows]
	if boxes[0].y < -TOLERANCE or boxes[-1].bottom > preview.height + TOLERANCE:
		return False
	for upper, lower in zip(boxes, boxes[1:]):
		if lower.y - upper.bottom < QR_FORM_MIN_ROW_GAP - TOLERANCE:
			return False
	qr_box = roles.qr_box
	if qr_box.x < column_text_right(roles) + QR_FORM_MIN_ROW_GAP - TOLERANCE:
		return False
	if qr_box.y < -TOLERANCE or qr_box.bottom > preview.height + TOLERANCE:
		return False
	if not preview.extendable and qr_box.right > preview.width + TOLERANCE:
		return False
	return True


#============================================
def run_fit_pass(roles: QrFormRoles, preview: PreviewSize, settings) -> FitPass:
	"""
	One measure-and-adjust pass over the form.

	Args:
		roles: Roles built from fresh bounds.
		preview: Preview extent.
		settings: Active label settings.

	Returns:
		FitPass; placement_resolved is only set when no render is pending.
	"""
	result = FitPass()
	if unify_first_pair_underline(roles.rows):
		result.did_mutate = True
	vertical = fit_rows_vertically(roles, preview)
	result.did_mutate = result.did_mutate or vertical.did_mutate
	if vertical.needs_render:
		result.needs_render = True
		return result
	column = resolve_column_overlap(roles, preview, settings)
	result.did_mutate = result.did_mutate or column.did_mutate
	if column.needs_render:
		result.needs_render = True
		return result
	result.placement_resolved = check_placement(roles, preview)
	return result


class QrFormNormalizer(Normalizer):
	"""
	Stacks heading/value rows and keeps them clear of the QR code.
	"""

	name = "qr-form"

	def matches(self, items: list, bounds: dict) -> bool:
		return resolve_qr_form_roles(items, bounds) is not None

	async def apply(self, context) -> NormalizationResult:
		did_mutate = False
		resolved = False
		reason = "fit-exhausted"
		for pass_index in range(QR_FORM_MAX_PASSES):
			snapshot = await context.refresh()
			roles = resolve_qr_form_roles(context.items, snapshot.bounds)
			if roles is None:
				reason = "pattern-lost"
				break
			preview = lrk.postprocess.resolve_preview_size(snapshot.preview)
			fit = run_fit_pass(roles, preview, context.settings)
			did_mutate = did_mutate or fit.did_mutate
			context.log(f"QR form pass {pass_index + 1}: mutate={fit.did_mutate} resolved={fit.placement_resolved}")
			if fit.placement_resolved:
				resolved = True
				reason = "placement-resolved"
				break
			if not fit.needs_render:
				break
		return NormalizationResult(self.name, did_mutate, resolved, reason)
