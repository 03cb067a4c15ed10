"""
Boxed barcode form: repeated code headers, a middle row and one barcode
inside a frame split by divider lines.
"""

# Standard Library
import dataclasses
import re

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize


Bounds = lrk.geometry.Bounds
PreviewSize = lrk.geometry.PreviewSize
TextItem = lrk.items.TextItem
BarcodeItem = lrk.items.BarcodeItem
ShapeItem = lrk.items.ShapeItem
Normalizer = lrk.normalize.Normalizer
NormalizationResult = lrk.normalize.NormalizationResult

BOXED_MIN_TEXT_ITEMS = lrk.config.BOXED_MIN_TEXT_ITEMS
BOXED_MAX_TEXT_ITEMS = lrk.config.BOXED_MAX_TEXT_ITEMS
BOXED_MIN_CODE_LENGTH = lrk.config.BOXED_MIN_CODE_LENGTH
BOXED_QUARTER_TURN_TOLERANCE = lrk.config.BOXED_QUARTER_TURN_TOLERANCE
BOXED_FRAME_PAD_X = lrk.config.BOXED_FRAME_PAD_X
BOXED_FRAME_PAD_TOP = lrk.config.BOXED_FRAME_PAD_TOP
BOXED_FRAME_PAD_BOTTOM = lrk.config.BOXED_FRAME_PAD_BOTTOM
BOXED_FRAME_MIN_WIDTH = lrk.config.BOXED_FRAME_MIN_WIDTH
BOXED_FRAME_MIN_HEIGHT = lrk.config.BOXED_FRAME_MIN_HEIGHT
BOXED_BARCODE_GAP = lrk.config.BOXED_BARCODE_GAP
BOXED_DIVIDER_MIN_RATIO = lrk.config.BOXED_DIVIDER_MIN_RATIO
BOXED_DIVIDER_MAX_RATIO = lrk.config.BOXED_DIVIDER_MAX_RATIO
BOXED_HEADER_FONT_BASE = lrk.config.BOXED_HEADER_FONT_BASE
BOXED_HEADER_FONT_FLOOR = lrk.config.BOXED_HEADER_FONT_FLOOR
BOXED_FRAME_STROKE = lrk.config.BOXED_FRAME_STROKE
BOXED_LINE_THICKNESS = lrk.config.BOXED_LINE_THICKNESS
BOXED_EQUIVALENT_TOLERANCE = lrk.config.BOXED_EQUIVALENT_TOLERANCE
BOXED_HEADER_GAP = lrk.config.BOXED_HEADER_GAP
BOXED_ROW_GAP = lrk.config.BOXED_ROW_GAP
BOXED_DIVIDER_CLEARANCE = lrk.config.BOXED_DIVIDER_CLEARANCE
BOXED_TEXT_DOWNSCALE = lrk.config.BOXED_TEXT_DOWNSCALE
BOXED_MAX_PASSES = lrk.config.BOXED_MAX_PASSES
BOXED_ORIENTATION_PENALTY = lrk.config.BOXED_ORIENTATION_PENALTY

WHITESPACE_PATTERN = re.compile(r"\s+")
RECT_SHAPES = ("rect", "roundRect")
TOLERANCE = 0.5


@dataclasses.dataclass
class BoxedFormRoles:
	left_header: TextItem
	right_header: TextItem
	middle: TextItem | None
	barcode: BarcodeItem

	def role_items(self) -> list:
		items = [self.left_header, self.right_header]
		if self.middle is not None:
			items.append(self.middle)
		items.append(self.barcode)
		return items


@dataclasses.dataclass
class ShapeTarget:
	shape_type: str
	footprint: Bounds
	width: float
	height: float
	rotation: float = 0.0
	stroke_width: int = BOXED_LINE_THICKNESS


@dataclasses.dataclass
class LayoutStep:
	did_mutate: bool = False
	needs_render: bool = False


#============================================
def code_token(value: str) -> str:
	"""
	Collapse a text row into a comparable code token.
	"""
	return WHITESPACE_PATTERN.sub("", str(value or "")).upper()


#============================================
def is_code_like(token: str) -> bool:
	"""
	Check whether a token looks like an article or location code.

	Args:
		token: Whitespace-free uppercase token.

	Returns:
		True for long tokens mixing letters and digits.
	"""
	if len(token) < BOXED_MIN_CODE_LENGTH:
		return False
	has_letter = any(char.isalpha() for char in token)
	has_digit = any(char.isdigit() for char in token)
	return has_letter and has_digit


#============================================
def is_barcode_photo_composition(items: list) -> bool:
	"""
	Detect the rotated side text plus single big letter barcode composition.

	Args:
		items: Item list.

	Returns:
		True when a barcode sits with a quarter-turn text and a one-character token.
	"""
	if not lrk.items.items_of_type(items, "barcode"):
		return False
	texts = lrk.items.texts_of(items)
	has_side_text = any(
		lrk.geometry.is_quarter_turn(item.rotation, BOXED_QUARTER_TURN_TOLERANCE)
		for item in texts
	)
	has_letter_token = any(
		len(str(item.text).strip()) == 1 and str(item.text).strip().isalnum()
		for item in texts
	)
	return has_side_text and has_letter_token


#============================================
def resolve_boxed_roles(items: list, bounds: dict[str, Bounds]) -> BoxedFormRoles | None:
	"""
	Recognize the boxed barcode form.

	Args:
		items: Item list.
		bounds: Rendered bounds by item id.

	Returns:
		BoxedFormRoles, or None when the items do not form the pattern.
	"""
	barcodes = lrk.items.items_of_type(items, "barcode")
	if len(barcodes) != 1 or lrk.items.items_of_type(items, "qr"):
		return None
	for item in items:
		if item.ITEM_TYPE in ("image", "icon"):
			return None
		if isinstance(item, ShapeItem) and item.shape_type not in RECT_SHAPES + ("line",):
			return None
	if is_barcode_photo_composition(items):
		return None
	texts = lrk.items.texts_of(items)
	if not BOXED_MIN_TEXT_ITEMS <= len(texts) <= BOXED_MAX_TEXT_ITEMS:
		return None
	for item in texts:
		if lrk.geometry.is_quarter_turn(item.rotation, BOXED_QUARTER_TURN_TOLERANCE):
			return None
	barcode = barcodes[0]
	if barcode.id not in bounds or any(item.id not in bounds for item in texts):
		return None
	groups: dict[str, list[TextItem]] = {}
	for item in texts:
		token = code_token(item.text)
		if is_code_like(token):
			groups.setdefault(token, []).append(item)
	repeated = [group for group in groups.values() if len(group) >= 2]
	if not repeated:
		return None
	# the topmost repeated pair forms the header row
	pair_group = min(repeated, key=lambda group: min(bounds[item.id].y for item in group))
	pair = sorted(pair_group, key=lambda item: bounds[item.id].y)[:2]
	pair.sort(key=lambda item: bounds[item.id].x)
	barcode_box = bounds[barcode.id]
	others = [
		item for item in texts
		if item not in pair and bounds[item.id].center_y < barcode_box.center_y
	]
	middle = max(others, key=lambda item: bounds[item.id].y) if others else None
	return BoxedFormRoles(pair[0], pair[1], middle, barcode)


#============================================
def pin_to_absolute(items: list, bounds: dict[str, Bounds], preview: PreviewSize, orientation: str) -> bool:
	"""
	Convert flow items to absolute ones without moving them.

	Args:
		items: Items to pin.
		bounds: Rendered bounds by item id.
		preview: Renderer preview extent.
		orientation: Label orientation.

	Returns:
		True when any item changed mode.
	"""
	changed = False
	for item in items:
		box = bounds.get(item.id)
		if item.position_mode == "absolute" or box is None:
			continue
		if isinstance(item, TextItem):
			width, height = box.width, box.height
		else:
			width, height = float(item.width), float(item.height)
		origin_x, origin_y = lrk.geometry.compute_unrotated_origin(box.x, box.y, width, height, item.rotation)
		item.x_offset, item.y_offset = lrk.geometry.draw_to_offsets(
			origin_x, origin_y, width, height, preview.height, orientation,
		)
		item.position_mode = "absolute"
		changed = True
	return changed


#============================================
def clear_structural_underlines(roles: BoxedFormRoles) -> bool:
	"""
	Drop underline styling from the form rows; dividers mark structure.
	"""
	changed = False
	for item in roles.role_items():
		if isinstance(item, TextItem) and item.text_underline:
			item.text_underline = False
			changed = True
	return changed


#============================================
def apply_prominence_floors(barcode: BarcodeItem, settings) -> bool:
	"""
	Raise the barcode to the media-scaled minimum width and height.
	"""
	floors = lrk.media.resolve_prominence_floors(settings)
	changed = False
	if barcode.width < floors.barcode_width:
		barcode.width = floors.barcode_width
		changed = True
	if barcode.height < floors.barcode_height:
		barcode.height = floors.barcode_height
		changed = True
	return changed


#============================================
def compute_form_height(roles: BoxedFormRoles, bounds: dict[str, Bounds]) -> float:
	"""
	Total frame height the stacked form needs, padding included.
	"""
	header_height = max(bounds[roles.left_header.id].height, bounds[roles.right_header.id].height)
	total = BOXED_FRAME_PAD_TOP + header_height + BOXED_HEADER_GAP
	if roles.middle is not None:
		total += BOXED_ROW_GAP + bounds[roles.middle.id].height + BOXED_ROW_GAP
	else:
		total += BOXED_BARCODE_GAP
	total += BOXED_BARCODE_GAP + bounds[roles.barcode.id].height + BOXED_FRAME_PAD_BOTTOM
	return total


#============================================
def layout_rows(roles: BoxedFormRoles, bounds: dict[str, Bounds], preview: PreviewSize, settings) -> LayoutStep:
	"""
	Place header cells, the middle row and the barcode in their bands.

	Args:
		roles: Recognized roles.
		bounds: Fresh rendered bounds by item id.
		preview: Renderer preview extent.
		settings: Active label settings.

	Returns:
		LayoutStep; needs_render is set after a size change.
	"""
	step = LayoutStep()
	scale = lrk.media.compute_prominence_scale(settings)
	font_cap = max(BOXED_HEADER_FONT_FLOOR, round(BOXED_HEADER_FONT_BASE * scale))
	for header in (roles.left_header, roles.right_header):
		if header.font_size > font_cap:
			header.font_size = font_cap
			step.needs_render = True
	if step.needs_render:
		step.did_mutate = True
		return step

	form_height = compute_form_height(roles, bounds)
	overflow = form_height - preview.height
	if overflow > TOLERANCE:
		floors = lrk.media.resolve_prominence_floors(settings)
		barcode = roles.barcode
		reduced = max(floors.barcode_height, int(barcode.height - overflow))
		if reduced < barcode.height:
			barcode.height = reduced
			return LayoutStep(True, True)
		for item in roles.role_items():
			if not isinstance(item, TextItem):
				continue
			shrunk = max(BOXED_HEADER_FONT_FLOOR, round(item.font_size * BOXED_TEXT_DOWNSCALE))
			if shrunk < item.font_size:
				item.font_size = shrunk
				step.needs_render = True
		if step.needs_render:
			step.did_mutate = True
			return step

	left_box = bounds[roles.left_header.id]
	right_box = bounds[roles.right_header.id]
	barcode_box = bounds[roles.barcode.id]
	column_boxes = [left_box, barcode_box]
	if roles.middle is not None:
		column_boxes.append(bounds[roles.middle.id])
	left_x = max(float(BOXED_FRAME_PAD_X), min(box.x for box in column_boxes))
	top_limit = max(float(BOXED_FRAME_PAD_TOP), preview.height - form_height + BOXED_FRAME_PAD_TOP)
	top_y = lrk.geometry.clamp(min(left_box.y, right_box.y), BOXED_FRAME_PAD_TOP, top_limit)

	moved = lrk.geometry.shift_item_to(roles.left_header, left_box, left_x, top_y)
	right_x = max(right_box.x, left_box.right + 2 * BOXED_DIVIDER_CLEARANCE)
	moved = lrk.geometry.shift_item_to(roles.right_header, right_box, right_x, top_y) or moved
	header_separator = max(left_box.bottom, right_box.bottom) + BOXED_HEADER_GAP
	cursor = header_separator
	if roles.middle is not None:
		middle_box = bounds[roles.middle.id]
		moved = lrk.geometry.shift_item_to(roles.middle, middle_box, left_x, cursor + BOXED_ROW_GAP) or moved
		cursor = middle_box.bottom + BOXED_ROW_GAP
	else:
		cursor += BOXED_BARCODE_GAP
	moved = lrk.geometry.shift_item_to(roles.barcode, barcode_box, left_x, cursor + BOXED_BARCODE_GAP) or moved
	step.did_mutate = moved
	return step


#============================================
def compute_structure_targets(roles: BoxedFormRoles, bounds: dict[str, Bounds]) -> dict[str, ShapeTarget]:
	"""
	Derive the frame and divider footprints from the laid-out rows.

	Args:
		roles: Recognized roles.
		bounds: Rendered bounds by item id.

	Returns:
		Targets keyed by frame, header, middle and divider.
	"""
	left_box = bounds[roles.left_header.id]
	right_box = bounds[roles.right_header.id]
	barcode_box = bounds[roles.barcode.id]
	content = lrk.geometry.compute_union_bounds([bounds[item.id] for item in roles.role_items()])
	frame = Bounds(
		content.x - BOXED_FRAME_PAD_X,
		content.y - BOXED_FRAME_PAD_TOP,
		max(float(BOXED_FRAME_MIN_WIDTH), content.width + 2 * BOXED_FRAME_PAD_X),
		max(float(BOXED_FRAME_MIN_HEIGHT), content.height + BOXED_FRAME_PAD_TOP + BOXED_FRAME_PAD_BOTTOM),
	)
	header_separator = max(left_box.bottom, right_box.bottom) + BOXED_HEADER_GAP
	if roles.middle is not None:
		middle_separator = bounds[roles.middle.id].bottom + BOXED_ROW_GAP
	else:
		middle_separator = barcode_box.y - BOXED_HEADER_GAP
	divider_x = lrk.geometry.clamp(
		(left_box.right + right_box.x) / 2.0,
		frame.x + frame.width * BOXED_DIVIDER_MIN_RATIO,
		frame.x + frame.width * BOXED_DIVIDER_MAX_RATIO,
	)
	half = BOXED_LINE_THICKNESS / 2.0
	divider_length = max(1.0, header_separator - frame.y)
	return {
		"frame": ShapeTarget("rect", frame.copy(), frame.width, frame.height, 0.0, BOXED_FRAME_STROKE),
		"header": ShapeTarget(
			"line",
			Bounds(frame.x, header_separator - half, frame.width, BOXED_LINE_THICKNESS),
			frame.width,
			BOXED_LINE_THICKNESS,
		),
		"middle": ShapeTarget(
			"line",
			Bounds(frame.x, middle_separator - half, frame.width, BOXED_LINE_THICKNESS),
			frame.width,
			BOXED_LINE_THICKNESS,
		),
		"divider": ShapeTarget(
			"line",
			Bounds(divider_x - half, frame.y, BOXED_LINE_THICKNESS, divider_length),
			divider_length,
			BOXED_LINE_THICKNESS,
			90.0,
		),
	}


#============================================
def apply_shape_target(item: ShapeItem, target: ShapeTarget, preview: PreviewSize, orientation: str) -> bool:
	"""
	Move and size a shape so its rendered footprint matches a target.

	Args:
		item: Shape to update.
		target: Desired footprint and unrotated size.
		preview: Renderer preview extent.
		orientation: Label orientation.

	Returns:
		True when any shape field changed.
	"""
	before = item.to_dict()
	footprint = target.footprint
	origin_x, origin_y = lrk.geometry.compute_unrotated_origin(
		footprint.x, footprint.y, target.width, target.height, target.rotation,
	)
	x_offset, y_offset = lrk.geometry.draw_to_offsets(
		origin_x, origin_y, target.width, target.height, preview.height, orientation,
	)
	item.shape_type = target.shape_type
	item.position_mode = "absolute"
	item.rotation = lrk.geometry.normalize_degrees(target.rotation)
	item.width = max(1, round(target.width))
	item.height = max(1, round(target.height))
	item.stroke_width = target.stroke_width
	item.corner_radius = 0
	item.x_offset = x_offset
	item.y_offset = y_offset
	return item.to_dict() != before


#============================================
def is_equivalent_footprint(box: Bounds, footprint: Bounds) -> bool:
	"""
	Check whether two footprints match within the duplicate tolerance.
	"""
	return (
		abs(box.x - footprint.x) <= BOXED_EQUIVALENT_TOLERANCE
		and abs(box.y - footprint.y) <= BOXED_EQUIVALENT_TOLERANCE
		and abs(box.width - footprint.width) <= BOXED_EQUIVALENT_TOLERANCE
		and abs(box.height - footprint.height) <= BOXED_EQUIVALENT_TOLERANCE
	)


#============================================
def find_equivalent_shapes(shapes: list[ShapeItem], bounds: dict[str, Bounds]) -> list[str]:
	"""
	Find shapes that repeat an earlier shape of the same kind in place.

	Args:
		shapes: Shape items in list order.
		bounds: Rendered bounds by item id, before any shape moves.

	Returns:
		Ids of every shape after the first of its equivalence group.
	"""
	kept: list[tuple[str, Bounds]] = []
	duplicates = []
	for item in shapes:
		box = bounds.get(item.id)
		if box is None:
			continue
		kind = "rect" if item.shape_type in RECT_SHAPES else item.shape_type
		if any(kind == other_kind and is_equivalent_footprint(box, other) for other_kind, other in kept):
			duplicates.append(item.id)
			continue
		kept.append((kind, box))
	return duplicates


#============================================
def score_line_reuse(box: Bounds | None, item: ShapeItem, target: ShapeTarget) -> float:
	"""
	Cost of turning an existing line into a target divider; lower is better.
	"""
	if box is None:
		return 1.0e9
	footprint = target.footprint
	vertical = box.height > box.width
	target_vertical = footprint.height > footprint.width
	score = 0.0 if vertical == target_vertical else BOXED_ORIENTATION_PENALTY
	score += 0.5 * abs(box.x - footprint.x) + abs(box.y - footprint.y)
	score += abs(lrk.geometry.normalize_degrees(item.rotation - target.rotation))
	return score


#============================================
def upsert_structure_shapes(session, bounds: dict[str, Bounds], preview: PreviewSize, targets: dict[str, ShapeTarget]) -> tuple[bool, str]:
	"""
	Reuse or create the frame and divider shapes, removing equivalent extras.

	The largest existing rectangle becomes the frame. Each divider reuses
	the best-scoring unused line before a new one is created. Shapes that
	repeat an earlier shape in place, and unused shapes that match a target
	footprint, are duplicates and are removed.

	Args:
		session: Label session.
		bounds: Rendered bounds by item id.
		preview: Renderer preview extent.
		targets: Targets from compute_structure_targets.

	Returns:
		Tuple of (whether shapes were added, changed or removed, frame id).
	"""
	orientation = session.settings.orientation
	shapes = [item for item in session.items if isinstance(item, ShapeItem)]
	duplicates = find_equivalent_shapes(shapes, bounds)
	shapes = [item for item in shapes if item.id not in duplicates]
	rects = [item for item in shapes if item.shape_type in RECT_SHAPES]
	lines = [item for item in shapes if item.shape_type == "line"]
	used: set[str] = set()
	changed = False

	frame_item = max(rects, key=lambda item: item.width * item.height) if rects else None
	if frame_item is None:
		frame_item = ShapeItem(session.next_item_id("shape"))
		session.items.append(frame_item)
		changed = True
	changed = apply_shape_target(frame_item, targets["frame"], preview, orientation) or changed
	used.add(frame_item.id)

	for key in ("header", "middle", "divider"):
		target = targets[key]
		candidates = [item for item in lines if item.id not in used]
		if candidates:
			line_item = min(candidates, key=lambda item: score_line_reuse(bounds.get(item.id), item, target))
		else:
			line_item = ShapeItem(session.next_item_id("shape"), shape_type="line")
			session.items.append(line_item)
			changed = True
		changed = apply_shape_target(line_item, target, preview, orientation) or changed
		used.add(line_item.id)

	line_targets = [targets[key].footprint for key in ("header", "middle", "divider")]
	for item in shapes:
		box = bounds.get(item.id)
		if item.id in used or box is None:
			continue
		if item.shape_type in RECT_SHAPES and is_equivalent_footprint(box, targets["frame"].footprint):
			duplicates.append(item.id)
		elif item.shape_type == "line" and any(is_equivalent_footprint(box, footprint) for footprint in line_targets):
			duplicates.append(item.id)
	if duplicates:
		session.remove_items(duplicates)
		changed = True
	return (changed, frame_item.id)


#============================================
def check_form_placement(roles: BoxedFormRoles, bounds: dict[str, Bounds], frame_id: str, preview: PreviewSize) -> bool:
	"""
	Verify the rows are disjoint and enclosed by a frame inside the preview.
	"""
	boxes = [bounds.get(item.id) for item in roles.role_items()]
	frame = bounds.get(frame_id)
	if frame is None or any(box is None for box in boxes):
		return False
	for index, box in enumerate(boxes):
		for other in boxes[index + 1:]:
			if lrk.geometry.boxes_intersect(box, other):
				return False
		if box.x < frame.x - TOLERANCE or box.right > frame.right + TOLERANCE:
			return False
		if box.y < frame.y - TOLERANCE or box.bottom > frame.bottom + TOLERANCE:
			return False
	if frame.y < -TOLERANCE or frame.bottom > preview.height + TOLERANCE:
		return False
	if not preview.extendable and frame.right > preview.width + TOLERANCE:
		return False
	return True


class BoxedBarcodeFormNormalizer(Normalizer):
	"""
	Lays out boxed barcode forms and maintains their frame and dividers.
	"""

	name = "boxed-barcode-form"

	def matches(self, items: list, bounds: dict) -> bool:
		return resolve_boxed_roles(items, bounds) is not None

	async def apply(self, context) -> NormalizationResult:
		settings = context.settings
		did_mutate = False
		roles = None
		laid_out = False
		floors_checked = False
		for _pass_index in range(BOXED_MAX_PASSES):
			snapshot = await context.refresh()
			if snapshot.missing_ids:
				return NormalizationResult(self.name, did_mutate, False, "missing-bounds")
			if pin_to_absolute(context.items, snapshot.bounds, snapshot.preview, settings.orientation):
				did_mutate = True
				continue
			roles = resolve_boxed_roles(context.items, snapshot.bounds)
			if roles is None:
				return NormalizationResult(self.name, did_mutate, False, "pattern-lost")
			if not floors_checked:
				floors_checked = True
				did_mutate = clear_structural_underlines(roles) or did_mutate
				if apply_prominence_floors(roles.barcode, settings):
					did_mutate = True
					continue
			step = layout_rows(roles, snapshot.bounds, snapshot.preview, settings)
			did_mutate = did_mutate or step.did_mutate
			if not step.needs_render:
				laid_out = True
				break
		snapshot = await context.refresh()
		roles = resolve_boxed_roles(context.items, snapshot.bounds)
		if roles is None:
			return NormalizationResult(self.name, did_mutate, False, "pattern-lost")
		targets = compute_structure_targets(roles, snapshot.bounds)
		shapes_changed, frame_id = upsert_structure_shapes(context.session, snapshot.bounds, snapshot.preview, targets)
		did_mutate = did_mutate or shapes_changed
		snapshot = await context.refresh()
		resolved = laid_out and check_form_placement(roles, snapshot.bounds, frame_id, snapshot.preview)
		context.log(f"Boxed barcode form: laid_out={laid_out} resolved={resolved}")
		return NormalizationResult(self.name, did_mutate, resolved, "boxed-form")
