"""
Label item types and their editor defaults.
"""

# Standard Library
import dataclasses
import re
import typing

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.media


LabelSettings = lrk.config.LabelSettings

DEFAULT_X_OFFSET = lrk.config.DEFAULT_X_OFFSET
DEFAULT_Y_OFFSET = lrk.config.DEFAULT_Y_OFFSET
DEFAULT_TEXT = lrk.config.DEFAULT_TEXT
DEFAULT_FONT_FAMILY = lrk.config.DEFAULT_FONT_FAMILY
DEFAULT_FONT_SIZE = lrk.config.DEFAULT_FONT_SIZE
DEFAULT_BARCODE_DATA = lrk.config.DEFAULT_BARCODE_DATA
DEFAULT_BARCODE_FORMAT = lrk.config.DEFAULT_BARCODE_FORMAT
DEFAULT_BARCODE_WIDTH = lrk.config.DEFAULT_BARCODE_WIDTH
DEFAULT_QR_ERROR_CORRECTION = lrk.config.DEFAULT_QR_ERROR_CORRECTION
DEFAULT_QR_ENCODING_MODE = lrk.config.DEFAULT_QR_ENCODING_MODE
DEFAULT_ICON_ID = lrk.config.DEFAULT_ICON_ID
DEFAULT_ICON_SIZE = lrk.config.DEFAULT_ICON_SIZE
DEFAULT_IMAGE_DITHER = lrk.config.DEFAULT_IMAGE_DITHER
DEFAULT_IMAGE_SMOOTHING = lrk.config.DEFAULT_IMAGE_SMOOTHING
DEFAULT_IMAGE_THRESHOLD = lrk.config.DEFAULT_IMAGE_THRESHOLD
MIN_IMAGE_SIDE = lrk.config.MIN_IMAGE_SIDE
MAX_IMAGE_SIDE = lrk.config.MAX_IMAGE_SIDE
SHAPE_TYPES = lrk.config.SHAPE_TYPES
SHAPE_DEFAULT_SIZES = lrk.config.SHAPE_DEFAULT_SIZES

COMMON_FIELDS = ("positionMode", "xOffset", "yOffset", "rotation")
CAMEL_PATTERN = re.compile(r"([A-Z])")


#============================================
def attribute_name(field_name: str) -> str:
	"""
	Convert a camelCase wire field to its snake_case attribute.

	Args:
		field_name: Wire field such as "textBold".

	Returns:
		Attribute name such as "text_bold".
	"""
	return CAMEL_PATTERN.sub(r"_\1", field_name).lower()


@dataclasses.dataclass
class LabelItem:
	id: str
	position_mode: str = "flow"
	x_offset: float = DEFAULT_X_OFFSET
	y_offset: float = DEFAULT_Y_OFFSET
	rotation: float = 0.0

	ITEM_TYPE: typing.ClassVar[str] = ""
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS

	@property
	def type(self) -> str:
		return self.ITEM_TYPE

	def to_dict(self) -> dict:
		data = {"id": self.id, "type": self.ITEM_TYPE}
		for field_name in self.FIELDS:
			data[field_name] = getattr(self, attribute_name(field_name))
		return data


@dataclasses.dataclass
class TextItem(LabelItem):
	text: str = DEFAULT_TEXT
	font_family: str = DEFAULT_FONT_FAMILY
	font_size: float = DEFAULT_FONT_SIZE
	text_bold: bool = False
	text_italic: bool = False
	text_underline: bool = False
	text_strikethrough: bool = False

	ITEM_TYPE: typing.ClassVar[str] = "text"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + (
		"text",
		"fontFamily",
		"fontSize",
		"textBold",
		"textItalic",
		"textUnderline",
		"textStrikethrough",
	)


@dataclasses.dataclass
class QrItem(LabelItem):
	data: str = ""
	size: int = 120
	qr_error_correction_level: str = DEFAULT_QR_ERROR_CORRECTION
	qr_version: int = 0
	qr_encoding_mode: str = DEFAULT_QR_ENCODING_MODE

	ITEM_TYPE: typing.ClassVar[str] = "qr"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + (
		"data",
		"size",
		"qrErrorCorrectionLevel",
		"qrVersion",
		"qrEncodingMode",
	)

	# QR codes are square; size is the only stored dimension
	@property
	def width(self) -> int:
		return self.size

	@property
	def height(self) -> int:
		return self.size

	def to_dict(self) -> dict:
		data = super().to_dict()
		data["height"] = self.size
		return data


@dataclasses.dataclass
class BarcodeItem(LabelItem):
	data: str = DEFAULT_BARCODE_DATA
	width: int = DEFAULT_BARCODE_WIDTH
	height: int = 64
	barcode_format: str = DEFAULT_BARCODE_FORMAT
	barcode_show_text: bool = False
	barcode_module_width: int = 2
	barcode_margin: int = 0

	ITEM_TYPE: typing.ClassVar[str] = "barcode"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + (
		"data",
		"width",
		"height",
		"barcodeFormat",
		"barcodeShowText",
		"barcodeModuleWidth",
		"barcodeMargin",
	)


@dataclasses.dataclass
class ShapeItem(LabelItem):
	shape_type: str = "rect"
	width: int = 180
	height: int = 36
	stroke_width: int = 2
	corner_radius: int = 0
	sides: int = 6

	ITEM_TYPE: typing.ClassVar[str] = "shape"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + (
		"shapeType",
		"width",
		"height",
		"strokeWidth",
		"cornerRadius",
		"sides",
	)


@dataclasses.dataclass
class ImageItem(LabelItem):
	image_data: str = ""
	image_name: str = ""
	width: int = MAX_IMAGE_SIDE
	height: int = MAX_IMAGE_SIDE
	image_dither: str = DEFAULT_IMAGE_DITHER
	image_threshold: int = DEFAULT_IMAGE_THRESHOLD
	image_smoothing: str = DEFAULT_IMAGE_SMOOTHING
	image_invert: bool = False

	ITEM_TYPE: typing.ClassVar[str] = "image"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + (
		"imageData",
		"imageName",
		"width",
		"height",
		"imageDither",
		"imageThreshold",
		"imageSmoothing",
		"imageInvert",
	)


@dataclasses.dataclass
class IconItem(LabelItem):
	icon_id: str = DEFAULT_ICON_ID
	width: int = DEFAULT_ICON_SIZE
	height: int = DEFAULT_ICON_SIZE

	ITEM_TYPE: typing.ClassVar[str] = "icon"
	FIELDS: typing.ClassVar[tuple[str, ...]] = COMMON_FIELDS + ("iconId", "width", "height")


ITEM_CLASSES: dict[str, type[LabelItem]] = {
	cls.ITEM_TYPE: cls
	for cls in (TextItem, QrItem, BarcodeItem, ShapeItem, ImageItem, IconItem)
}
ITEM_TYPES = tuple(ITEM_CLASSES)


#============================================
def create_item(
	item_type: str,
	item_id: str,
	settings: LabelSettings,
	shape_type: str = "rect",
) -> LabelItem:
	"""
	Create an item with editor defaults for the active media.

	Args:
		item_type: One of ITEM_TYPES.
		item_id: Persistent item id.
		settings: Active label settings.
		shape_type: Shape variant for shape items.

	Returns:
		New LabelItem subclass instance.
	"""
	if item_type not in ITEM_CLASSES:
		raise ValueError(f"Unknown item type: {item_type}")
	media = lrk.media.resolve_media(settings.media)
	if item_type == "qr":
		return QrItem(item_id, size=lrk.media.compute_initial_qr_size_dots(settings))
	if item_type == "barcode":
		height = max(16, round(media.print_area * 0.5))
		return BarcodeItem(item_id, width=DEFAULT_BARCODE_WIDTH, height=height)
	if item_type == "shape":
		if shape_type not in SHAPE_TYPES:
			shape_type = "rect"
		width, height = SHAPE_DEFAULT_SIZES[shape_type]
		return ShapeItem(item_id, shape_type=shape_type, width=width, height=height)
	if item_type == "image":
		side = max(MIN_IMAGE_SIDE, min(MAX_IMAGE_SIDE, media.print_area))
		return ImageItem(item_id, width=side, height=side)
	if item_type == "icon":
		side = min(DEFAULT_ICON_SIZE, media.print_area)
		return IconItem(item_id, width=side, height=side)
	return TextItem(item_id)


#============================================
def item_properties() -> dict[str, list[str]]:
	"""
	Editable wire fields per item type.
	"""
	return {item_type: list(cls.FIELDS) for item_type, cls in ITEM_CLASSES.items()}


#============================================
def texts_of(items: list[LabelItem]) -> list[TextItem]:
	"""
	Filter text items in list order.
	"""
	return [item for item in items if isinstance(item, TextItem)]


#============================================
def items_of_type(items: list[LabelItem], item_type: str) -> list[LabelItem]:
	"""
	Filter items by type tag in list order.
	"""
	return [item for item in items if item.ITEM_TYPE == item_type]
