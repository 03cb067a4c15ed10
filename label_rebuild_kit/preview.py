"""
Headless preview renderer that reports rendered item bounds.
"""

# Standard Library
import asyncio

# PIP3 modules
import reportlab.pdfbase.pdfmetrics

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items
import label_rebuild_kit.media


LabelSettings = lrk.config.LabelSettings
Bounds = lrk.geometry.Bounds
PreviewSize = lrk.geometry.PreviewSize
LabelItem = lrk.items.LabelItem
TextItem = lrk.items.TextItem

FEED_PAD_START = lrk.config.FEED_PAD_START
FEED_PAD_END = lrk.config.FEED_PAD_END
MIN_PREVIEW_WIDTH = lrk.config.MIN_PREVIEW_WIDTH
DEFAULT_FONT_REGULAR = lrk.config.DEFAULT_FONT_REGULAR
DEFAULT_FONT_BOLD = lrk.config.DEFAULT_FONT_BOLD
DEFAULT_FONT_ITALIC = lrk.config.DEFAULT_FONT_ITALIC
DEFAULT_FONT_BOLD_ITALIC = lrk.config.DEFAULT_FONT_BOLD_ITALIC
TEXT_LEADING_RATIO = lrk.config.TEXT_LEADING_RATIO


#============================================
def map_font_name(bold: bool, italic: bool) -> str:
	"""
	Map text styling to a built-in PDF font for metrics.

	Args:
		bold: Bold flag.
		italic: Italic flag.

	Returns:
		ReportLab font name.
	"""
	if italic and bold:
		return DEFAULT_FONT_BOLD_ITALIC
	if italic:
		return DEFAULT_FONT_ITALIC
	if bold:
		return DEFAULT_FONT_BOLD
	return DEFAULT_FONT_REGULAR


#============================================
def measure_text(item: TextItem) -> tuple[float, float]:
	"""
	Measure the unrotated extent of a text item.

	Args:
		item: Text item.

	Returns:
		Tuple of (width, height) in dots.
	"""
	lines = str(item.text).split("\n")
	font_name = map_font_name(item.text_bold, item.text_italic)
	font_size = float(item.font_size)
	leading = font_size * TEXT_LEADING_RATIO
	text_height = font_size + leading * (len(lines) - 1)
	max_width = max(
		reportlab.pdfbase.pdfmetrics.stringWidth(line, font_name, font_size)
		for line in lines
	)
	return (max(1.0, max_width), max(1.0, text_height))


#============================================
def measure_item(item: LabelItem) -> tuple[float, float]:
	"""
	Measure the unrotated extent of any item.

	Args:
		item: Label item.

	Returns:
		Tuple of (width, height) in dots.
	"""
	if isinstance(item, TextItem):
		return measure_text(item)
	return (max(1.0, float(item.width)), max(1.0, float(item.height)))


#============================================
def compute_layout(
	items: list[LabelItem],
	settings: LabelSettings,
) -> tuple[dict[str, Bounds], PreviewSize]:
	"""
	Lay out items the way the label preview does.

	Flow items advance a cursor along the feed axis. Absolute items are
	placed by their offsets alone. Rotation is applied about the item center.

	Args:
		items: Items in list order.
		settings: Active label settings.

	Returns:
		Tuple of (bounds by item id, preview size).
	"""
	media = lrk.media.resolve_media(settings.media)
	cross_extent = float(media.print_area)
	length_dots = lrk.media.compute_length_dots(settings)
	horizontal = settings.orientation != "vertical"
	cursor = float(FEED_PAD_START)
	bounds_by_id: dict[str, Bounds] = {}
	for item in items:
		width, height = measure_item(item)
		rotated_width, rotated_height = lrk.geometry.compute_rotated_size(width, height, item.rotation)
		feed_position = None
		if item.position_mode == "flow":
			feed_position = cursor
			cursor += rotated_width if horizontal else rotated_height
		draw_x, draw_y = lrk.geometry.offsets_to_draw(
			item.x_offset,
			item.y_offset,
			width,
			height,
			cross_extent,
			settings.orientation,
			feed_position,
		)
		if feed_position is not None and horizontal:
			draw_x += (rotated_width - width) / 2.0
		elif feed_position is not None:
			draw_y += (rotated_height - height) / 2.0
		unrotated = Bounds(draw_x, draw_y, width, height)
		bounds_by_id[item.id] = lrk.geometry.compute_rotated_bounds(unrotated, item.rotation)

	if horizontal:
		content_end = max([cursor] + [box.right for box in bounds_by_id.values()])
	else:
		content_end = max([cursor] + [box.bottom for box in bounds_by_id.values()])
	feed_extent = max(float(MIN_PREVIEW_WIDTH), content_end + FEED_PAD_END)
	if length_dots is not None:
		feed_extent = float(length_dots)
	extendable = length_dots is None
	if horizontal:
		return (bounds_by_id, PreviewSize(feed_extent, cross_extent, extendable))
	return (bounds_by_id, PreviewSize(cross_extent, feed_extent, extendable))


class PreviewRenderer:
	"""
	Rendering collaborator that recomputes bounds for the session items.

	Each call to render_frame yields to the event loop once before measuring,
	so requests made while a frame is in flight can be coalesced.
	"""

	def __init__(self, session):
		self.session = session
		self.bounds_by_id: dict[str, Bounds] = {}
		self.preview_size = PreviewSize(float(MIN_PREVIEW_WIDTH), float(lrk.config.DEFAULT_PREVIEW_HEIGHT), True)
		self.frame_count = 0

	async def render_frame(self) -> None:
		await asyncio.sleep(0)
		bounds_by_id, preview_size = compute_layout(self.session.items, self.session.settings)
		self.bounds_by_id = bounds_by_id
		self.preview_size = preview_size
		self.frame_count += 1
