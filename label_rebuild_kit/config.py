"""
Shared configuration and constants.
"""

import dataclasses


MM_PER_INCH = 25.4
DEFAULT_MEDIA = "W24"
DEFAULT_RESOLUTION = "LOW"
DEFAULT_ORIENTATION = "horizontal"
ORIENTATIONS = ("horizontal", "vertical")
REFERENCE_PRINT_AREA = 128

FEED_PAD_START = 2
FEED_PAD_END = 2
MIN_PREVIEW_WIDTH = 64
MIN_PREVIEW_HEIGHT = 48
DEFAULT_PREVIEW_WIDTH = 220
DEFAULT_PREVIEW_HEIGHT = 128

RENDER_RETRY_LIMIT = 3

MIN_QR_SIZE_DOTS = 8
DEFAULT_QR_SIZE_DOTS = 120
QR_FEED_PADDING_DOTS = 10
MAX_QR_VERSION = 40

DEFAULT_FONT_FAMILY = "Barlow"
DEFAULT_FONT_SIZE = 24
DEFAULT_TEXT = "New text"
MIN_FONT_SIZE = 6
DEFAULT_X_OFFSET = 4
DEFAULT_Y_OFFSET = 0
DEFAULT_BARCODE_DATA = "1234567890"
DEFAULT_BARCODE_FORMAT = "CODE128"
DEFAULT_BARCODE_WIDTH = 220
DEFAULT_QR_ERROR_CORRECTION = "M"
DEFAULT_QR_ENCODING_MODE = "auto"
DEFAULT_ICON_ID = "star"
DEFAULT_ICON_SIZE = 48
DEFAULT_IMAGE_DITHER = "floyd-steinberg"
DEFAULT_IMAGE_SMOOTHING = "medium"
DEFAULT_IMAGE_THRESHOLD = 128
MIN_IMAGE_SIDE = 8
MAX_IMAGE_SIDE = 96

SHAPE_TYPES = ("rect", "roundRect", "oval", "polygon", "line")
SHAPE_DEFAULT_SIZES = {
	"line": (180, 6),
	"oval": (180, 44),
	"polygon": (180, 52),
	"rect": (180, 36),
	"roundRect": (180, 36),
}
POSITION_MODES = ("flow", "absolute")

DEFAULT_FONT_REGULAR = "Helvetica"
DEFAULT_FONT_BOLD = "Helvetica-Bold"
DEFAULT_FONT_ITALIC = "Helvetica-Oblique"
DEFAULT_FONT_BOLD_ITALIC = "Helvetica-BoldOblique"
TEXT_LEADING_RATIO = 1.2

# normalization thresholds
FALLBACK_QR_FLOOR_RATIO = 0.6
INVENTORY_QR_RATIO = 0.62
INVENTORY_ROW_FRACTIONS = (0.05, 0.205, 0.41, 0.54, 0.71, 0.84)
INVENTORY_TEXT_X_RATIO = 0.045
INVENTORY_QR_GAP_RATIO = 0.03
INVENTORY_MIN_QR_GAP = 6
INVENTORY_FONT_SIZES = (12, 20, 11, 18, 11, 18)
INVENTORY_HEADINGS = ("Artikelname:", "Artikelnummer:", "Lagerplatz:")
INVENTORY_PLACEMENT_RETRIES = 2

QR_FORM_MIN_TEXT_ITEMS = 4
QR_FORM_MAX_TEXT_ITEMS = 8
QR_FORM_MIN_HEADINGS = 2
QR_FORM_MIN_ROW_GAP = 3
QR_FORM_ROW_GAP_RATIO = 0.25
QR_FORM_FONT_FLOOR = 10
QR_FORM_MIN_DOWNSCALE = 0.2
QR_FORM_RESIDUAL_DOWNSCALE = 0.85
QR_FORM_COLUMN_GAP = 4
QR_FORM_QR_FLOOR_RATIO = 0.35
QR_FORM_QR_FLOOR_DOTS = 40
QR_FORM_MAX_PASSES = 8

BOXED_MIN_TEXT_ITEMS = 3
BOXED_MAX_TEXT_ITEMS = 5
BOXED_MIN_CODE_LENGTH = 10
BOXED_QUARTER_TURN_TOLERANCE = 12.0
BOXED_FRAME_PAD_X = 6
BOXED_FRAME_PAD_TOP = 4
BOXED_FRAME_PAD_BOTTOM = 4
BOXED_FRAME_MIN_WIDTH = 20
BOXED_FRAME_MIN_HEIGHT = 24
BOXED_BARCODE_GAP = 6
BOXED_DIVIDER_MIN_RATIO = 0.35
BOXED_DIVIDER_MAX_RATIO = 0.65
BOXED_HEADER_FONT_BASE = 16
BOXED_HEADER_FONT_FLOOR = 10
BOXED_FRAME_STROKE = 2
BOXED_LINE_THICKNESS = 2
BOXED_EQUIVALENT_TOLERANCE = 4.0
BOXED_HEADER_GAP = 3
BOXED_ROW_GAP = 4
BOXED_DIVIDER_CLEARANCE = 8
BOXED_TEXT_DOWNSCALE = 0.85
BOXED_MAX_PASSES = 6
BOXED_ORIENTATION_PENALTY = 500.0

MARKER_MIN_SIDE = 4
MARKER_MAX_SIDE = 36
MARKER_MAX_ASPECT = 1.65
MARKER_MAX_SHAPE_TEXT_ITEMS = 3
MARKER_FOLLOW_LINE_MAX_LENGTH = 48
MARKER_LEFT_MARGIN = 11
MARKER_MIN_FONT_SIZE = 8
MARKER_HEADING_FONT_RATIO = 0.72
MARKER_OPTION_FONT_RATIO = 0.62
MARKER_BAND_RATIO = 0.75
MARKER_FIT_RATIO = 0.9
MARKER_MIN_SCALE = 0.65
MARKER_HEADING_LEADING = 1.22
MARKER_OPTION_LEADING = 1.18
MARKER_SECTION_GAP_RATIO = 0.55
MARKER_MIN_SECTION_GAP = 6
MARKER_TEXT_GAP_RATIO = 0.7
MARKER_MIN_TEXT_GAP = 8
MARKER_OPTION_SHRINK = 0.9
MARKER_PLACEMENT_PASSES = 4

PROMINENCE_SCALE_MIN = 0.72
PROMINENCE_SCALE_MAX = 1.35
PROMINENCE_TOKEN_FONT_BASE = 58
PROMINENCE_TOKEN_FONT_MIN = 18
PROMINENCE_BARCODE_WIDTH_BASE = 240
PROMINENCE_BARCODE_WIDTH_MIN = 96
PROMINENCE_BARCODE_HEIGHT_BASE = 40
PROMINENCE_BARCODE_HEIGHT_MIN = 16

AGGREGATE_MIN_LINES = 4
AGGREGATE_MIN_LENGTH = 24
AGGREGATE_MIN_FRAGMENT_LENGTH = 4
AGGREGATE_MIN_CONTAINED_ROWS = 2

# message keys
WARNING_LOW_CONFIDENCE = "assistant.warningNormalizationLowConfidence"
WARNING_PLACEMENT_APPROXIMATE = "assistant.warningNormalizationPlacementApproximate"
WARNING_UNKNOWN_PROPERTY = "assistant.warningUnknownProperty"
WARNING_RENDER_FAILED = "assistant.warningRenderFailed"
WARNING_ALIGN_SUPPRESSED = "assistant.warningAlignSuppressed"
ERROR_ACTION_UNSUPPORTED = "assistant.actionUnsupported"
ERROR_ITEM_NOT_FOUND = "assistant.actionItemNotFound"
ERROR_INVALID_ITEM_TYPE = "assistant.actionInvalidItemType"
ERROR_NO_APPLICABLE_CHANGES = "assistant.actionNoApplicableChanges"
ERROR_INVALID_PAYLOAD = "assistant.actionInvalidPayload"
ERROR_ALIGN_FAILED = "assistant.actionAlignFailed"


@dataclasses.dataclass
class LabelSettings:
	media: str = DEFAULT_MEDIA
	resolution: str = DEFAULT_RESOLUTION
	media_length_mm: float | None = None
	orientation: str = DEFAULT_ORIENTATION


@dataclasses.dataclass
class RunOptions:
	force_rebuild: bool | None = None
	preferred_media: str | None = None
	allow_create_if_missing: bool | None = None


@dataclasses.dataclass
class RunResult:
	errors: list[str] = dataclasses.field(default_factory=list)
	warnings: list[str] = dataclasses.field(default_factory=list)
	executed: int = 0

	def to_dict(self) -> dict:
		return {"errors": list(self.errors), "warnings": list(self.warnings)}
