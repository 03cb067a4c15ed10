"""
Checkbox marker groups: a heading, one option row and its square marker.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.fallback
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize
import label_rebuild_kit.postprocess


Bounds = lrk.geometry.Bounds
TextItem = lrk.items.TextItem
ShapeItem = lrk.items.ShapeItem
Normalizer = lrk.normalize.Normalizer
NormalizationResult = lrk.normalize.NormalizationResult

MARKER_MIN_SIDE = lrk.config.MARKER_MIN_SIDE
MARKER_MAX_SIDE = lrk.config.MARKER_MAX_SIDE
MARKER_MAX_ASPECT = lrk.config.MARKER_MAX_ASPECT
MARKER_MAX_SHAPE_TEXT_ITEMS = lrk.config.MARKER_MAX_SHAPE_TEXT_ITEMS
MARKER_FOLLOW_LINE_MAX_LENGTH = lrk.config.MARKER_FOLLOW_LINE_MAX_LENGTH
MARKER_LEFT_MARGIN = lrk.config.MARKER_LEFT_MARGIN
MARKER_MIN_FONT_SIZE = lrk.config.MARKER_MIN_FONT_SIZE
MARKER_HEADING_FONT_RATIO = lrk.config.MARKER_HEADING_FONT_RATIO
MARKER_OPTION_FONT_RATIO = lrk.config.MARKER_OPTION_FONT_RATIO
MARKER_BAND_RATIO = lrk.config.MARKER_BAND_RATIO
MARKER_FIT_RATIO = lrk.config.MARKER_FIT_RATIO
MARKER_MIN_SCALE = lrk.config.MARKER_MIN_SCALE
MARKER_HEADING_LEADING = lrk.config.MARKER_HEADING_LEADING
MARKER_OPTION_LEADING = lrk.config.MARKER_OPTION_LEADING
MARKER_SECTION_GAP_RATIO = lrk.config.MARKER_SECTION_GAP_RATIO
MARKER_MIN_SECTION_GAP = lrk.config.MARKER_MIN_SECTION_GAP
MARKER_TEXT_GAP_RATIO = lrk.config.MARKER_TEXT_GAP_RATIO
MARKER_MIN_TEXT_GAP = lrk.config.MARKER_MIN_TEXT_GAP
MARKER_OPTION_SHRINK = lrk.config.MARKER_OPTION_SHRINK
MARKER_PLACEMENT_PASSES = lrk.config.MARKER_PLACEMENT_PASSES
MM_PER_INCH = lrk.config.MM_PER_INCH

MARKER_SHAPE_TYPES = ("rect", "roundRect")
TOLERANCE = 0.5


@dataclasses.dataclass
class LineEntry:
	item: TextItem
	line: str
	has_marker: bool
	bounds: Bounds | None = None


@dataclasses.dataclass
class MarkerGroup:
	heading_text: str
	option_text: str
	heading_source: TextItem
	option_source: TextItem
	marker_source: ShapeItem | None
	has_text_marker: bool


#============================================
def is_square_marker_shape(item) -> bool:
	"""
	Check whether an item is a small, roughly square checkbox shape.
	"""
	if not isinstance(item, ShapeItem) or item.shape_type not in MARKER_SHAPE_TYPES:
		return False
	if item.width < MARKER_MIN_SIDE or item.height < MARKER_MIN_SIDE:
		return False
	longest = max(item.width, item.height)
	shortest = max(1, min(item.width, item.height))
	return longest <= MARKER_MAX_SIDE and longest / shortest <= MARKER_MAX_ASPECT


#============================================
def collect_line_entries(texts: list[TextItem], bounds: dict[str, Bounds]) -> list[LineEntry]:
	"""
	Split text items into non-empty lines with estimated line bounds.

	Args:
		texts: Text items in list order.
		bounds: Rendered bounds by item id.

	Returns:
		One LineEntry per non-empty line, in reading order.
	"""
	entries = []
	for item in texts:
		box = bounds.get(item.id)
		line_height = max(MARKER_MIN_FONT_SIZE, round(item.font_size * 1.15))
		cursor_y = box.y if box is not None else 0.0
		for raw_line in str(item.text or "").split("\n"):
			line = raw_line.strip()
			if line:
				line_box = None
				if box is not None:
					line_box = Bounds(box.x, cursor_y, box.width, float(line_height))
				entries.append(LineEntry(item, line, lrk.postprocess.has_leading_marker(line), line_box))
			cursor_y += line_height
	return entries


#============================================
def _center_distance(box_a: Bounds, box_b: Bounds) -> float:
	return math.hypot(box_a.center_x - box_b.center_x, box_a.center_y - box_b.center_y)


#============================================
def find_nearest_line_to_markers(entries: list[LineEntry], markers: list[ShapeItem], bounds: dict[str, Bounds]) -> int:
	"""
	Index of the line closest to any marker shape, or the last line.
	"""
	marker_boxes = [bounds[item.id] for item in markers if item.id in bounds]
	best_index = len(entries) - 1
	best_distance = None
	for index, entry in enumerate(entries):
		if entry.bounds is None:
			continue
		for marker_box in marker_boxes:
			distance = _center_distance(entry.bounds, marker_box)
			if best_distance is None or distance < best_distance:
				best_distance = distance
				best_index = index
	return best_index


#============================================
def find_nearest_marker(entry: LineEntry, markers: list[ShapeItem], bounds: dict[str, Bounds]) -> ShapeItem | None:
	"""
	Marker shape closest to a line, or the first marker without geometry.
	"""
	if not markers:
		return None
	if entry.bounds is None:
		return markers[0]
	candidates = [item for item in markers if item.id in bounds]
	if not candidates:
		return markers[0]
	return min(candidates, key=lambda item: _center_distance(entry.bounds, bounds[item.id]))


#============================================
def resolve_option_source(
	texts: list[TextItem],
	heading_source: TextItem,
	fallback: TextItem,
	first_option: str,
	marker: ShapeItem | None,
	bounds: dict[str, Bounds],
) -> TextItem:
	"""
	Pick the text item whose style and position the option row inherits.

	Candidates are text items other than the heading source that contain
	the first option line. Near the marker wins, with a penalty per line.
	"""
	wanted = lrk.postprocess.normalize_text(first_option)
	if not wanted:
		return fallback
	candidates = [
		item for item in texts
		if item.id != heading_source.id and wanted in lrk.postprocess.normalize_text(item.text)
	]
	if not candidates:
		return fallback
	marker_box = bounds.get(marker.id) if marker is not None else None
	if marker_box is not None:
		scored = [
			(_center_distance(marker_box, bounds[item.id]) + 4 * len(lrk.postprocess.non_empty_lines(item.text)), index)
			for index, item in enumerate(candidates)
			if item.id in bounds
		]
		if scored:
			return candidates[min(scored)[1]]
	return min(candidates, key=lambda item: (len(lrk.postprocess.non_empty_lines(item.text)), -item.y_offset))


#============================================
def resolve_marker_group(items: list, bounds: dict[str, Bounds]) -> MarkerGroup | None:
	"""
	Detect a checkbox group: heading lines followed by a marked option.

	Evidence is either a text line starting with a checkbox or bullet
	marker, or a square marker shape next to two or three text items.
	Labels carrying QR codes or barcodes are never marker groups.

	Args:
		items: Item list.
		bounds: Rendered bounds by item id.

	Returns:
		MarkerGroup, or None when the pattern does not apply.
	"""
	texts = lrk.items.texts_of(items)
	if not texts:
		return None
	if lrk.items.items_of_type(items, "qr") or lrk.items.items_of_type(items, "barcode"):
		return None
	markers = [item for item in items if is_square_marker_shape(item)]
	entries = collect_line_entries(texts, bounds)
	if not entries:
		return None
	has_text_marker = any(entry.has_marker for entry in entries)
	if not has_text_marker:
		if not markers or not 2 <= len(texts) <= MARKER_MAX_SHAPE_TEXT_ITEMS:
			return None
		start = find_nearest_line_to_markers(entries, markers, bounds)
	else:
		start = next(index for index, entry in enumerate(entries) if entry.has_marker)

	heading_lines = [entry.line for entry in entries[:start]]
	if not heading_lines:
		return None
	first_option = lrk.postprocess.strip_leading_marker(entries[start].line).strip()
	option_lines = [first_option]
	if start + 1 < len(entries):
		follow = entries[start + 1]
		if not follow.has_marker and (follow.line.startswith("(") or len(follow.line) <= MARKER_FOLLOW_LINE_MAX_LENGTH):
			option_lines.append(follow.line)
	heading_text = "\n".join(heading_lines).strip()
	option_text = "\n".join(line for line in option_lines if line).strip()
	if not heading_text or not option_text:
		return None

	heading_source = entries[0].item
	marker = find_nearest_marker(entries[start], markers, bounds)
	option_source = resolve_option_source(texts, heading_source, entries[start].item, first_option, marker, bounds)
	return MarkerGroup(heading_text, option_text, heading_source, option_source, marker, has_text_marker)


#============================================
def resolve_marker_square_size(option: TextItem, source: ShapeItem | None) -> int:
	"""
	Edge of a readable checkbox square for an option block.
	"""
	font_size = max(MARKER_MIN_FONT_SIZE, round(option.font_size))
	line_count = max(1, len(lrk.postprocess.non_empty_lines(option.text)))
	block_height = line_count * max(MARKER_MIN_FONT_SIZE, round(font_size * MARKER_OPTION_LEADING))
	preferred = round(block_height * (0.8 if line_count > 1 else 0.95))
	low = max(14, round(font_size * 1.2))
	high = max(28, round(font_size * 2.2))
	modeled = max(low, min(high, preferred))
	source_side = max(source.width, source.height) if source is not None else 0
	return max(MARKER_MIN_FONT_SIZE, round(max(modeled, source_side)))


#============================================
def harmonize_marker_sizing(settings, heading: TextItem, option: TextItem) -> bool:
	"""
	Cap heading and option font sizes so both sections fit across the tape.

	The option stays at least one point smaller than the heading.

	Args:
		settings: Active label settings.
		heading: Heading text item.
		option: Option text item.

	Returns:
		True when a font size changed.
	"""
	width_mm = lrk.media.resolve_media(settings.media).width_mm
	dots_cross = lrk.media.resolve_resolution(settings.resolution).dots_cross
	band = max(48, round(width_mm * dots_cross * MARKER_BAND_RATIO / MM_PER_INCH))
	target_height = max(40, round(band * MARKER_FIT_RATIO))
	heading_lines = max(1, len(lrk.postprocess.non_empty_lines(heading.text)))
	option_lines = max(1, len(lrk.postprocess.non_empty_lines(option.text)))

	def measure(heading_size: int, option_size: int) -> int:
		heading_line = max(MARKER_MIN_FONT_SIZE, round(heading_size * MARKER_HEADING_LEADING))
		option_line = max(MARKER_MIN_FONT_SIZE, round(option_size * MARKER_OPTION_LEADING))
		gap = max(4, round(heading_line * 0.5))
		return heading_lines * heading_line + gap + option_lines * option_line

	heading_size = min(
		max(MARKER_MIN_FONT_SIZE, round(heading.font_size)),
		max(12, round(width_mm * MARKER_HEADING_FONT_RATIO)),
	)
	option_size = min(
		max(MARKER_MIN_FONT_SIZE, round(option.font_size)),
		max(10, round(width_mm * MARKER_OPTION_FONT_RATIO)),
		max(MARKER_MIN_FONT_SIZE, heading_size - 1),
	)
	required = measure(heading_size, option_size)
	if required > target_height:
		scale = max(MARKER_MIN_SCALE, target_height / required)
		heading_size = max(MARKER_MIN_FONT_SIZE, round(heading_size * scale))
		option_size = max(MARKER_MIN_FONT_SIZE, round(option_size * scale))
		if option_size >= heading_size:
			option_size = max(MARKER_MIN_FONT_SIZE, heading_size - 1)
		if measure(heading_size, option_size) > target_height and heading_size > MARKER_MIN_FONT_SIZE:
			heading_size -= 1
			if option_size >= heading_size:
				option_size = max(MARKER_MIN_FONT_SIZE, heading_size - 1)

	changed = False
	if round(heading.font_size) != heading_size:
		heading.font_size = heading_size
		changed = True
	if round(option.font_size) != option_size:
		option.font_size = option_size
		changed = True
	return changed


#============================================
def rewrite_marker_group(session, group: MarkerGroup) -> tuple[TextItem, ShapeItem, TextItem, bool]:
	"""
	Rebuild the group as heading, marker square and option text.

	Source items keep their ids. Other text items and marker shapes are
	dropped; every other item passes through in front of the group.

	Args:
		session: Label session.
		group: Detected marker group.

	Returns:
		Tuple of (heading, marker, option, whether the item list changed).
	"""
	heading = group.heading_source
	changed = heading.text != group.heading_text
	heading.text = group.heading_text
	if group.option_source.id == heading.id:
		option = TextItem(
			session.next_item_id("text"),
			font_family=heading.font_family,
			font_size=heading.font_size,
			text_bold=heading.text_bold,
			rotation=heading.rotation,
		)
		if group.has_text_marker and option.font_size >= heading.font_size:
			option.font_size = max(MARKER_MIN_FONT_SIZE, round(heading.font_size * MARKER_OPTION_SHRINK))
		changed = True
	else:
		option = group.option_source
	changed = changed or option.text != group.option_text
	option.text = group.option_text

	marker = group.marker_source
	if marker is None:
		marker = ShapeItem(session.next_item_id("shape"))
		changed = True
	side = resolve_marker_square_size(option, group.marker_source)
	stroke = max(1, marker.stroke_width)
	if (marker.shape_type, marker.width, marker.height, marker.corner_radius, marker.stroke_width) != ("rect", side, side, 0, stroke):
		changed = True
	marker.shape_type = "rect"
	marker.width = side
	marker.height = side
	marker.corner_radius = 0
	marker.stroke_width = stroke

	for item in (heading, marker, option):
		if item.position_mode != "absolute":
			item.position_mode = "absolute"
			changed = True
	group_ids = {heading.id, marker.id, option.id}
	passthrough = [
		item for item in session.items
		if item.id not in group_ids and not isinstance(item, TextItem) and not is_square_marker_shape(item)
	]
	next_items = passthrough + [heading, marker, option]
	if [item.id for item in next_items] != session.item_ids():
		changed = True
	session.replace_items(next_items)
	return (heading, marker, option, changed)


#============================================
def compute_marker_targets(
	heading_box: Bounds,
	marker_box: Bounds,
	option_box: Bounds,
	heading: TextItem,
	option: TextItem,
	preview,
) -> dict[str, tuple[float, float]]:
	"""
	Top-left targets that stack the heading above a marker and option row.

	The block is centered across the tape. The marker sits at the left
	margin, vertically centered on the option row, with the option text
	to its right.

	Returns:
		Dict of role to (x, y) target.
	"""
	heading_line = max(MARKER_MIN_FONT_SIZE, round(heading.font_size * 1.15))
	section_gap = max(MARKER_MIN_SECTION_GAP, round(heading_line * MARKER_SECTION_GAP_RATIO))
	text_gap = resolve_text_gap(option)
	row_height = max(marker_box.height, option_box.height)
	total = heading_box.height + section_gap + row_height
	top = max(0, round((preview.height - total) / 2.0))
	row_top = top + heading_box.height + section_gap
	return {
		"heading": (MARKER_LEFT_MARGIN, top),
		"marker": (MARKER_LEFT_MARGIN, row_top + round((row_height - marker_box.height) / 2.0)),
		"option": (MARKER_LEFT_MARGIN + marker_box.width + text_gap, row_top + round((row_height - option_box.height) / 2.0)),
	}


#============================================
def resolve_text_gap(option: TextItem) -> int:
	return max(MARKER_MIN_TEXT_GAP, round(max(MARKER_MIN_FONT_SIZE, option.font_size) * MARKER_TEXT_GAP_RATIO))


#============================================
def check_marker_placement(boxes: dict[str, Bounds], option: TextItem, preview) -> bool:
	"""
	Verify the marker is left of its option, below the heading, and on the tape.
	"""
	heading_box = boxes["heading"]
	marker_box = boxes["marker"]
	option_box = boxes["option"]
	if marker_box.right + resolve_text_gap(option) > option_box.x + TOLERANCE:
		return False
	if marker_box.x < MARKER_LEFT_MARGIN - TOLERANCE:
		return False
	for box in (marker_box, option_box):
		if box.y < heading_box.bottom - TOLERANCE:
			return False
	for box in boxes.values():
		if box.y < -TOLERANCE or box.bottom > preview.height + TOLERANCE:
			return False
		if not preview.extendable and box.right > preview.width + TOLERANCE:
			return False
	return True


class MarkerGroupNormalizer(Normalizer):
	"""
	Rewrites checkbox option groups into heading, square marker and option.
	"""

	name = "marker-group"

	def matches(self, items: list, bounds: dict) -> bool:
		return resolve_marker_group(items, bounds) is not None

	async def apply(self, context) -> NormalizationResult:
		did_mutate = bool(lrk.fallback.remove_aggregate_duplicates(context.session))
		snapshot = await context.refresh()
		group = resolve_marker_group(context.items, snapshot.bounds)
		if group is None:
			return NormalizationResult(self.name, did_mutate, False, "pattern-lost")
		heading, marker, option, rewritten = rewrite_marker_group(context.session, group)
		did_mutate = did_mutate or rewritten
		if harmonize_marker_sizing(context.settings, heading, option):
			did_mutate = True
		if rewritten:
			context.editor.set_selected_item_ids([])
		roles = {"heading": heading, "marker": marker, "option": option}
		ids = [item.id for item in roles.values()]
		for _pass_index in range(MARKER_PLACEMENT_PASSES):
			snapshot = await context.refresh(ids)
			if snapshot.missing_ids:
				continue
			preview = lrk.postprocess.resolve_preview_size(snapshot.preview)
			boxes = {role: snapshot.bounds[item.id] for role, item in roles.items()}
			targets = compute_marker_targets(boxes["heading"], boxes["marker"], boxes["option"], heading, option, preview)
			moved = False
			for role, item in roles.items():
				target_x, target_y = lrk.geometry.clamp_target(boxes[role], preview, *targets[role])
				moved = lrk.geometry.shift_item_to(item, boxes[role], target_x, target_y) or moved
			if not moved:
				resolved = check_marker_placement(boxes, option, preview)
				context.log(f"Marker group placed: resolved={resolved}")
				return NormalizationResult(self.name, did_mutate, resolved, "marker-group")
			did_mutate = True
		snapshot = await context.refresh(ids)
		if snapshot.missing_ids:
			return NormalizationResult(self.name, did_mutate, False, "missing-bounds")
		preview = lrk.postprocess.resolve_preview_size(snapshot.preview)
		boxes = {role: snapshot.bounds[item.id] for role, item in roles.items()}
		resolved = check_marker_placement(boxes, option, preview)
		context.log(f"Marker group placed after retries: resolved={resolved}")
		return NormalizationResult(self.name, did_mutate, resolved, "marker-group")
