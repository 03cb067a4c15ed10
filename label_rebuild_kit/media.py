"""
Tape media profiles and QR sizing rules.
"""

# Standard Library
import dataclasses
import re

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config


LabelSettings = lrk.config.LabelSettings

MM_PER_INCH = lrk.config.MM_PER_INCH
DEFAULT_MEDIA = lrk.config.DEFAULT_MEDIA
DEFAULT_RESOLUTION = lrk.config.DEFAULT_RESOLUTION
REFERENCE_PRINT_AREA = lrk.config.REFERENCE_PRINT_AREA
MIN_QR_SIZE_DOTS = lrk.config.MIN_QR_SIZE_DOTS
DEFAULT_QR_SIZE_DOTS = lrk.config.DEFAULT_QR_SIZE_DOTS
QR_FEED_PADDING_DOTS = lrk.config.QR_FEED_PADDING_DOTS
PROMINENCE_SCALE_MIN = lrk.config.PROMINENCE_SCALE_MIN
PROMINENCE_SCALE_MAX = lrk.config.PROMINENCE_SCALE_MAX
PROMINENCE_TOKEN_FONT_BASE = lrk.config.PROMINENCE_TOKEN_FONT_BASE
PROMINENCE_TOKEN_FONT_MIN = lrk.config.PROMINENCE_TOKEN_FONT_MIN
PROMINENCE_BARCODE_WIDTH_BASE = lrk.config.PROMINENCE_BARCODE_WIDTH_BASE
PROMINENCE_BARCODE_WIDTH_MIN = lrk.config.PROMINENCE_BARCODE_WIDTH_MIN
PROMINENCE_BARCODE_HEIGHT_BASE = lrk.config.PROMINENCE_BARCODE_HEIGHT_BASE
PROMINENCE_BARCODE_HEIGHT_MIN = lrk.config.PROMINENCE_BARCODE_HEIGHT_MIN


@dataclasses.dataclass(frozen=True)
class MediaSpec:
	media_id: str
	width_mm: float
	print_area: int


@dataclasses.dataclass(frozen=True)
class ResolutionSpec:
	resolution_id: str
	dots_cross: int
	dots_feed: int
	min_length: int


@dataclasses.dataclass(frozen=True)
class ProminenceFloors:
	token_font_size: int
	barcode_width: int
	barcode_height: int


MEDIA = {
	"W3_5": MediaSpec("W3_5", 3.5, 24),
	"W6": MediaSpec("W6", 6.0, 32),
	"W9": MediaSpec("W9", 9.0, 50),
	"W12": MediaSpec("W12", 12.0, 70),
	"W18": MediaSpec("W18", 18.0, 112),
	"W24": MediaSpec("W24", 24.0, 128),
}

RESOLUTIONS = {
	"LOW": ResolutionSpec("LOW", 180, 180, 31),
	"HIGH": ResolutionSpec("HIGH", 180, 320, 62),
}

MEDIA_INTENT_PATTERN = re.compile(r"(?<![\d.])w?\s*(\d{1,2}(?:[.,]5)?)\s*(?:mm\b|(?=\s*tape\b))", re.IGNORECASE)
MEDIA_ID_PATTERN = re.compile(r"\bW(3_5|6|9|12|18|24)\b", re.IGNORECASE)


#============================================
def resolve_media(media_id: str | None) -> MediaSpec:
	"""
	Look up a media profile, falling back to the default tape.

	Args:
		media_id: Media identifier such as "W24".

	Returns:
		MediaSpec for the id or the default media.
	"""
	key = str(media_id or "").strip().upper()
	return MEDIA.get(key, MEDIA[DEFAULT_MEDIA])


#============================================
def resolve_resolution(resolution_id: str | None) -> ResolutionSpec:
	"""
	Look up a print resolution, falling back to the default.

	Args:
		resolution_id: Resolution identifier such as "LOW".

	Returns:
		ResolutionSpec for the id or the default resolution.
	"""
	key = str(resolution_id or "").strip().upper()
	return RESOLUTIONS.get(key, RESOLUTIONS[DEFAULT_RESOLUTION])


#============================================
def compute_length_dots(settings: LabelSettings) -> int | None:
	"""
	Convert a fixed media length to feed-axis dots.

	Args:
		settings: Active label settings.

	Returns:
		Length in dots, or None for auto-length labels.
	"""
	if settings.media_length_mm is None:
		return None
	length_mm = float(settings.media_length_mm)
	if length_mm <= 0:
		return None
	resolution = resolve_resolution(settings.resolution)
	raw_dots = round(length_mm / MM_PER_INCH * resolution.dots_feed)
	return max(resolution.min_length, raw_dots)


#============================================
def compute_max_qr_size_dots(settings: LabelSettings) -> int:
	"""
	Compute the largest QR edge that fits the active media.

	Args:
		settings: Active label settings.

	Returns:
		Maximum QR size in dots.
	"""
	media = resolve_media(settings.media)
	max_size = media.print_area or DEFAULT_QR_SIZE_DOTS
	length_dots = compute_length_dots(settings)
	if length_dots is not None:
		max_size = min(max_size, length_dots - QR_FEED_PADDING_DOTS)
	return max(MIN_QR_SIZE_DOTS, int(max_size))


#============================================
def compute_initial_qr_size_dots(settings: LabelSettings) -> int:
	"""
	Default QR size for a newly added QR item.

	Args:
		settings: Active label settings.

	Returns:
		Initial QR size in dots.
	"""
	return min(DEFAULT_QR_SIZE_DOTS, compute_max_qr_size_dots(settings))


#============================================
def clamp_qr_size(value: float, settings: LabelSettings) -> int:
	"""
	Clamp a requested QR size to the media limits.

	Args:
		value: Requested size.
		settings: Active label settings.

	Returns:
		Clamped integer size.
	"""
	return max(1, min(compute_max_qr_size_dots(settings), int(round(value))))


#============================================
def compute_prominence_scale(settings: LabelSettings) -> float:
	"""
	Ratio of the active print area to the W24 reference area.

	Args:
		settings: Active label settings.

	Returns:
		Clamped scale factor.
	"""
	media = resolve_media(settings.media)
	raw_scale = media.print_area / REFERENCE_PRINT_AREA
	return max(PROMINENCE_SCALE_MIN, min(PROMINENCE_SCALE_MAX, raw_scale))


#============================================
def resolve_prominence_floors(settings: LabelSettings) -> ProminenceFloors:
	"""
	Minimum visual sizes scaled to the active tape width.

	Args:
		settings: Active label settings.

	Returns:
		ProminenceFloors for tokens and barcodes.
	"""
	scale = compute_prominence_scale(settings)
	return ProminenceFloors(
		token_font_size=max(PROMINENCE_TOKEN_FONT_MIN, round(PROMINENCE_TOKEN_FONT_BASE * scale)),
		barcode_width=max(PROMINENCE_BARCODE_WIDTH_MIN, round(PROMINENCE_BARCODE_WIDTH_BASE * scale)),
		barcode_height=max(PROMINENCE_BARCODE_HEIGHT_MIN, round(PROMINENCE_BARCODE_HEIGHT_BASE * scale)),
	)


#============================================
def resolve_preferred_media(text: str | None) -> str | None:
	"""
	Parse a tape-width intent like "24mm" or "W12" into a media id.

	Args:
		text: Free-form text from a prompt or option.

	Returns:
		Media id or None when no known width is mentioned.
	"""
	if not text:
		return None
	value = str(text)
	id_match = MEDIA_ID_PATTERN.search(value)
	if id_match:
		return "W" + id_match.group(1).upper()
	for match in MEDIA_INTENT_PATTERN.finditer(value):
		width_mm = float(match.group(1).replace(",", "."))
		for media in MEDIA.values():
			if abs(media.width_mm - width_mm) < 0.01:
				return media.media_id
	return None
