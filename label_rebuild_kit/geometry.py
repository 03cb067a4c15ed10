"""
Rotation-aware box math and draw-space offset conversion.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config


FEED_PAD_START = lrk.config.FEED_PAD_START


@dataclasses.dataclass
class Bounds:
	x: float
	y: float
	width: float
	height: float

	@property
	def right(self) -> float:
		return self.x + self.width

	@property
	def bottom(self) -> float:
		return self.y + self.height

	@property
	def center_x(self) -> float:
		return self.x + self.width / 2.0

	@property
	def center_y(self) -> float:
		return self.y + self.height / 2.0

	def copy(self) -> "Bounds":
		return dataclasses.replace(self)

	def to_dict(self) -> dict:
		return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclasses.dataclass
class PreviewSize:
	width: float
	height: float
	extendable: bool = False


#============================================
def clamp(value: float, low: float, high: float) -> float:
	"""
	Clamp a value into a closed range.

	When the range is inverted the low bound wins.
	"""
	return max(low, min(high, value))


#============================================
def normalize_degrees(value, fallback: float = 0.0) -> float:
	"""
	Normalize an angle into the -180..180 range.

	Args:
		value: Angle in degrees, any numeric-like value.
		fallback: Value used when the input is not a finite number.

	Returns:
		Normalized angle rounded to three decimals.
	"""
	try:
		numeric = float(value)
	except (TypeError, ValueError):
		numeric = float(fallback)
	if not math.isfinite(numeric):
		numeric = float(fallback)
	wrapped = ((numeric % 360.0) + 360.0) % 360.0
	if wrapped > 180.0:
		wrapped -= 360.0
	result = round(wrapped, 3)
	if result == 0:
		return 0.0
	return result


#============================================
def has_rotation(value) -> bool:
	"""
	Check whether an angle is meaningfully non-zero.
	"""
	return abs(normalize_degrees(value)) > 0.0001


#============================================
def is_quarter_turn(value, tolerance: float) -> bool:
	"""
	Check whether an angle is close to 90 or 270 degrees.

	Args:
		value: Angle in degrees.
		tolerance: Allowed deviation in degrees.

	Returns:
		True for near-vertical rotations.
	"""
	angle = abs(normalize_degrees(value)) % 180.0
	return abs(angle - 90.0) <= tolerance


#============================================
def compute_rotated_size(width: float, height: float, rotation) -> tuple[float, float]:
	"""
	Axis-aligned size of a box rotated about its center.

	Args:
		width: Unrotated width.
		height: Unrotated height.
		rotation: Angle in degrees.

	Returns:
		Tuple of (width, height), each at least 1.
	"""
	radians = math.radians(normalize_degrees(rotation))
	cos_value = abs(math.cos(radians))
	sin_value = abs(math.sin(radians))
	rotated_width = width * cos_value + height * sin_value
	rotated_height = width * sin_value + height * cos_value
	return (max(1.0, rotated_width), max(1.0, rotated_height))


#============================================
def compute_rotated_bounds(bounds: Bounds, rotation) -> Bounds:
	"""
	Rotate an unrotated box about its center and return the axis-aligned box.

	Args:
		bounds: Unrotated box in draw space.
		rotation: Angle in degrees.

	Returns:
		Rotation-applied Bounds.
	"""
	if not has_rotation(rotation):
		return Bounds(bounds.x, bounds.y, max(1.0, bounds.width), max(1.0, bounds.height))
	rotated_width, rotated_height = compute_rotated_size(bounds.width, bounds.height, rotation)
	return Bounds(
		bounds.center_x - rotated_width / 2.0,
		bounds.center_y - rotated_height / 2.0,
		rotated_width,
		rotated_height,
	)


#============================================
def compute_unrotated_origin(
	target_x: float,
	target_y: float,
	width: float,
	height: float,
	rotation,
) -> tuple[float, float]:
	"""
	Find the unrotated top-left corner whose rotated footprint starts at a target.

	Args:
		target_x: Desired left edge of the rotated footprint.
		target_y: Desired top edge of the rotated footprint.
		width: Unrotated width.
		height: Unrotated height.
		rotation: Angle in degrees.

	Returns:
		Tuple of (x, y) for the unrotated box.
	"""
	if not has_rotation(rotation):
		return (target_x, target_y)
	rotated_width, rotated_height = compute_rotated_size(width, height, rotation)
	return (
		target_x + (rotated_width - width) / 2.0,
		target_y + (rotated_height - height) / 2.0,
	)


#============================================
def compute_bounds_overlap(box_a: Bounds, box_b: Bounds) -> tuple[float, float, float]:
	"""
	Measure the overlap between two boxes.

	Args:
		box_a: First box.
		box_b: Second box.

	Returns:
		Tuple of (overlap_x, overlap_y, area); zeros when disjoint.
	"""
	overlap_x = min(box_a.right, box_b.right) - max(box_a.x, box_b.x)
	overlap_y = min(box_a.bottom, box_b.bottom) - max(box_a.y, box_b.y)
	if overlap_x <= 0 or overlap_y <= 0:
		return (0.0, 0.0, 0.0)
	return (overlap_x, overlap_y, overlap_x * overlap_y)


#============================================
def boxes_intersect(box_a: Bounds, box_b: Bounds) -> bool:
	"""
	Check whether two boxes overlap.
	"""
	return compute_bounds_overlap(box_a, box_b)[2] > 0


#============================================
def compute_union_bounds(boxes: list[Bounds]) -> Bounds | None:
	"""
	Smallest box enclosing every input box.

	Args:
		boxes: Boxes to enclose.

	Returns:
		Union Bounds, or None for an empty list.
	"""
	if not boxes:
		return None
	left = min(box.x for box in boxes)
	top = min(box.y for box in boxes)
	right = max(box.right for box in boxes)
	bottom = max(box.bottom for box in boxes)
	return Bounds(left, top, right - left, bottom - top)


#============================================
def clamp_target(
	bounds: Bounds,
	preview: PreviewSize,
	target_x: float,
	target_y: float,
) -> tuple[float, float]:
	"""
	Keep a target position inside the preview.

	Extendable previews only clamp the left edge on the feed axis.

	Args:
		bounds: Current item bounds.
		preview: Preview extent.
		target_x: Desired left edge.
		target_y: Desired top edge.

	Returns:
		Tuple of clamped (x, y).
	"""
	max_x = max(0.0, preview.width - bounds.width)
	max_y = max(0.0, preview.height - bounds.height)
	clamped_x = max(0.0, target_x)
	if not preview.extendable:
		clamped_x = min(max_x, clamped_x)
	clamped_y = clamp(target_y, 0.0, max_y)
	return (clamped_x, clamped_y)


#============================================
def shift_item_to(item, bounds: Bounds, target_x: float, target_y: float) -> bool:
	"""
	Move an item so its rendered footprint starts at a target.

	The shift is a pure translation, so the item's own offsets change by the
	same delta as its bounds. The cached bounds are updated in place.

	Args:
		item: Label item with x_offset and y_offset.
		bounds: Current rendered bounds of the item.
		target_x: Desired left edge.
		target_y: Desired top edge.

	Returns:
		True when the item moved.
	"""
	delta_x = round(target_x - bounds.x)
	delta_y = round(target_y - bounds.y)
	if delta_x == 0 and delta_y == 0:
		return False
	item.x_offset = round(item.x_offset + delta_x)
	item.y_offset = round(item.y_offset + delta_y)
	bounds.x += delta_x
	bounds.y += delta_y
	return True


#============================================
def offsets_to_draw(
	x_offset: float,
	y_offset: float,
	width: float,
	height: float,
	preview_height: float,
	orientation: str,
	feed_position: float | None = None,
) -> tuple[float, float]:
	"""
	Convert item offsets to the unrotated top-left corner in draw space.

	Horizontal labels center items across the tape, so the y offset is
	relative to the centered position. Vertical labels use the offsets
	directly on the cross axis.

	Args:
		x_offset: Item x offset.
		y_offset: Item y offset.
		width: Unrotated item width.
		height: Unrotated item height.
		preview_height: Preview height in dots.
		orientation: "horizontal" or "vertical".
		feed_position: Flow cursor position, or None for absolute items.

	Returns:
		Tuple of (draw_x, draw_y).
	"""
	if orientation == "vertical":
		base_y = FEED_PAD_START if feed_position is None else feed_position
		return (x_offset, base_y + y_offset)
	base_x = FEED_PAD_START if feed_position is None else feed_position
	return (base_x + x_offset, (preview_height - height) / 2.0 + y_offset)


#============================================
def draw_to_offsets(
	draw_x: float,
	draw_y: float,
	width: float,
	height: float,
	preview_height: float,
	orientation: str,
) -> tuple[int, int]:
	"""
	Convert an unrotated draw-space corner back to absolute item offsets.

	Args:
		draw_x: Unrotated left edge in draw space.
		draw_y: Unrotated top edge in draw space.
		width: Unrotated item width.
		height: Unrotated item height.
		preview_height: Preview height in dots.
		orientation: "horizontal" or "vertical".

	Returns:
		Tuple of integer (x_offset, y_offset).
	"""
	if orientation == "vertical":
		return (round(draw_x), max(0, round(draw_y - FEED_PAD_START)))
	x_offset = max(0, round(draw_x - FEED_PAD_START))
	y_offset = round(draw_y - (preview_height - height) / 2.0)
	return (x_offset, y_offset)
