"""
Property aliasing, payload extraction and validated change application.
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


LabelSettings = lrk.config.LabelSettings
LabelItem = lrk.items.LabelItem
QrItem = lrk.items.QrItem
ITEM_CLASSES = lrk.items.ITEM_CLASSES
attribute_name = lrk.items.attribute_name
normalize_degrees = lrk.geometry.normalize_degrees

MIN_FONT_SIZE = lrk.config.MIN_FONT_SIZE
MAX_QR_VERSION = lrk.config.MAX_QR_VERSION
SHAPE_TYPES = lrk.config.SHAPE_TYPES
POSITION_MODES = lrk.config.POSITION_MODES

CANONICAL_FIELDS = frozenset(
	field_name
	for cls in ITEM_CLASSES.values()
	for field_name in cls.FIELDS
) | {"width", "height"}

FIELD_ALIASES = {
	"content": "text",
	"value": "data",
	"qrData": "data",
	"qrContent": "data",
	"barcodeData": "data",
	"bold": "textBold",
	"fett": "textBold",
	"text_bold": "textBold",
	"italic": "textItalic",
	"kursiv": "textItalic",
	"text_italic": "textItalic",
	"underline": "textUnderline",
	"underlined": "textUnderline",
	"textUnderlined": "textUnderline",
	"text_underline": "textUnderline",
	"strikethrough": "textStrikethrough",
	"strike": "textStrikethrough",
	"text_strikethrough": "textStrikethrough",
	"icon": "iconId",
	"icon_id": "iconId",
	"x": "xOffset",
	"x_offset": "xOffset",
	"y": "yOffset",
	"y_offset": "yOffset",
	"angle": "rotation",
	"position_mode": "positionMode",
	"font": "fontFamily",
	"font_family": "fontFamily",
	"font_size": "fontSize",
	"shape": "shapeType",
	"shape_type": "shapeType",
	"stroke_width": "strokeWidth",
	"corner_radius": "cornerRadius",
	"qr_size": "size",
	"errorCorrection": "qrErrorCorrectionLevel",
	"qr_error_correction_level": "qrErrorCorrectionLevel",
	"qr_encoding_mode": "qrEncodingMode",
	"qr_version": "qrVersion",
	"format": "barcodeFormat",
	"barcode_format": "barcodeFormat",
	"showText": "barcodeShowText",
	"barcode_show_text": "barcodeShowText",
	"moduleWidth": "barcodeModuleWidth",
	"barcode_module_width": "barcodeModuleWidth",
	"barcode_margin": "barcodeMargin",
	"image_data": "imageData",
	"image_name": "imageName",
	"image_dither": "imageDither",
	"image_threshold": "imageThreshold",
	"image_smoothing": "imageSmoothing",
	"image_invert": "imageInvert",
}

ACTION_ALIASES = {
	"add": "add_item",
	"update": "update_item",
	"remove": "remove_item",
	"delete_item": "remove_item",
	"clear": "clear_items",
	"clear_all": "clear_items",
	"reset_items": "clear_items",
	"reset_canvas": "clear_items",
	"select": "select_items",
	"align": "align_selected",
}

RESERVED_ACTION_KEYS = frozenset({
	"action",
	"itemType",
	"type",
	"shapeType",
	"itemId",
	"itemIndex",
	"itemIds",
	"target",
	"settings",
	"mode",
	"reference",
	"alignment",
	"relativeTo",
	"skipBatchConfirm",
})
PAYLOAD_KEYS = ("changes", "properties", "item", "values")
NESTED_IDENTITY_KEYS = frozenset({"id", "type", "itemType"})

TRUE_WORDS = frozenset({"true", "1", "yes", "y", "on", "bold", "italic", "underline"})
FALSE_WORDS = frozenset({"false", "0", "no", "n", "off", "normal", "none"})
ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")

BARCODE_KEYS = frozenset({"barcodeFormat", "barcodeShowText", "barcodeModuleWidth", "barcodeMargin"})
IMAGE_KEYS = frozenset({"imageData", "imageName", "imageDither", "imageThreshold", "imageSmoothing", "imageInvert"})
SHAPE_KEYS = frozenset({"shapeType", "strokeWidth", "cornerRadius", "sides"})
QR_KEYS = frozenset({"qrErrorCorrectionLevel", "qrVersion", "qrEncodingMode", "size"})
PLACEMENT_KEYS = frozenset({"xOffset", "yOffset"})


@dataclasses.dataclass
class ChangeReport:
	applied: list[str] = dataclasses.field(default_factory=list)
	unknown: list[str] = dataclasses.field(default_factory=list)
	ignored: list[str] = dataclasses.field(default_factory=list)


#============================================
def _validate_alias_table() -> None:
	"""
	Fail fast when an alias points at a field no item type declares.
	"""
	for alias, target in FIELD_ALIASES.items():
		if target not in CANONICAL_FIELDS:
			raise ValueError(f"Alias {alias!r} targets unknown field {target!r}")
		if alias in CANONICAL_FIELDS:
			raise ValueError(f"Alias {alias!r} shadows a canonical field")


_validate_alias_table()

LOWERCASE_LOOKUP = {name.lower(): name for name in CANONICAL_FIELDS}
LOWERCASE_LOOKUP.update({alias.lower(): target for alias, target in FIELD_ALIASES.items()})


#============================================
def normalize_action_name(value) -> str:
	"""
	Map an action verb and its aliases to the canonical verb.

	Args:
		value: Raw verb from the action.

	Returns:
		Canonical verb, or the cleaned input when no alias applies.
	"""
	name = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
	return ACTION_ALIASES.get(name, name)


#============================================
def extract_changes_payload(action: dict) -> dict:
	"""
	Find the change set carried by an action.

	Args:
		action: Raw action dict.

	Returns:
		Copy of the first nested payload object, or the non-reserved keys.
	"""
	for key in PAYLOAD_KEYS:
		value = action.get(key)
		if isinstance(value, dict):
			return {
				nested_key: nested_value
				for nested_key, nested_value in value.items()
				if nested_key not in NESTED_IDENTITY_KEYS
			}
	return {
		key: value
		for key, value in action.items()
		if key not in RESERVED_ACTION_KEYS and key not in PAYLOAD_KEYS
	}


#============================================
def coerce_boolean(value) -> bool | None:
	"""
	Interpret loose boolean values.

	Args:
		value: bool, number or word.

	Returns:
		Parsed bool, or None when the value is not recognizable.
	"""
	if isinstance(value, bool):
		return value
	if isinstance(value, (int, float)):
		return value != 0
	text = str(value).strip().lower()
	if text in TRUE_WORDS:
		return True
	if text in FALSE_WORDS:
		return False
	return None


#============================================
def _is_bold_weight(value) -> bool:
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return value >= 600
	text = str(value).strip().lower()
	if text.isdigit():
		return int(text) >= 600
	return text in ("bold", "bolder", "semibold", "heavy", "black")


#============================================
def expand_structured_changes(raw: dict) -> dict:
	"""
	Flatten nested style, position and size objects into flat fields.

	Explicit flat keys win over values taken from nested objects.

	Args:
		raw: Change payload as sent by the proposer.

	Returns:
		New flat change dict.
	"""
	changes = dict(raw)
	style = changes.pop("style", None)
	if isinstance(style, dict):
		for key, target in (
			("bold", "textBold"),
			("italic", "textItalic"),
			("underline", "textUnderline"),
			("strikethrough", "textStrikethrough"),
		):
			if key in style:
				changes.setdefault(target, style[key])
	weight = changes.pop("fontWeight", None)
	if weight is not None:
		changes.setdefault("textBold", _is_bold_weight(weight))
	font_style = changes.pop("fontStyle", None)
	if font_style is not None:
		changes.setdefault("textItalic", str(font_style).strip().lower() in ("italic", "oblique"))
	decoration = changes.pop("textDecoration", None)
	if decoration is not None:
		decoration_text = str(decoration).lower()
		changes.setdefault("textUnderline", "underline" in decoration_text)
		changes.setdefault("textStrikethrough", "line-through" in decoration_text)
	position = changes.get("position")
	if isinstance(position, dict):
		changes.pop("position")
		if "x" in position:
			changes.setdefault("xOffset", position["x"])
		if "y" in position:
			changes.setdefault("yOffset", position["y"])
	elif isinstance(position, str):
		changes.pop("position")
		changes.setdefault("positionMode", position)
	for key in ("size", "dimensions"):
		value = changes.get(key)
		if isinstance(value, dict):
			changes.pop(key)
			if "width" in value:
				changes.setdefault("width", value["width"])
			if "height" in value:
				changes.setdefault("height", value["height"])
	return changes


#============================================
def normalize_change_keys(changes: dict) -> tuple[dict, list[str]]:
	"""
	Resolve aliases to canonical field names.

	Canonical keys are taken first so an alias never overrides them.

	Args:
		changes: Flat change dict.

	Returns:
		Tuple of (canonical change dict, unknown keys).
	"""
	normalized: dict = {}
	unknown: list[str] = []
	for key, value in changes.items():
		if key in CANONICAL_FIELDS:
			normalized[key] = value
	for key, value in changes.items():
		if key in CANONICAL_FIELDS:
			continue
		canonical = FIELD_ALIASES.get(key) or LOWERCASE_LOOKUP.get(str(key).lower())
		if canonical is None:
			unknown.append(str(key))
			continue
		normalized.setdefault(canonical, value)
	return (normalized, unknown)


#============================================
def resolve_canonical_changes(raw: dict) -> tuple[dict, list[str]]:
	"""
	Expand and alias a raw payload in one step.
	"""
	return normalize_change_keys(expand_structured_changes(raw))


#============================================
def changes_have_explicit_placement(raw: dict) -> bool:
	"""
	Check whether a payload positions the item explicitly.

	Args:
		raw: Raw change payload.

	Returns:
		True when x/y offsets or absolute positioning are requested.
	"""
	normalized, _unknown = resolve_canonical_changes(raw)
	if PLACEMENT_KEYS & normalized.keys():
		return True
	return str(normalized.get("positionMode", "")).strip().lower() == "absolute"


#============================================
def infer_item_type(raw: dict) -> str:
	"""
	Guess the item type a payload describes.

	Args:
		raw: Raw change payload.

	Returns:
		Item type name, text when nothing more specific matches.
	"""
	normalized, _unknown = resolve_canonical_changes(raw)
	keys = set(normalized)
	if keys & BARCODE_KEYS:
		return "barcode"
	if keys & IMAGE_KEYS:
		return "image"
	if "iconId" in keys:
		return "icon"
	if keys & SHAPE_KEYS:
		return "shape"
	if keys & QR_KEYS:
		return "qr"
	if "data" in keys and "text" not in keys:
		return "qr"
	return "text"


#============================================
def _to_number(value) -> float:
	if isinstance(value, bool):
		raise TypeError("Boolean is not a number")
	number = float(value)
	if not math.isfinite(number):
		raise ValueError(f"Non-finite number: {value!r}")
	return number


#============================================
def _to_boolean(value) -> bool:
	result = coerce_boolean(value)
	if result is None:
		raise ValueError(f"Not a boolean: {value!r}")
	return result


#============================================
def _to_choice(value, choices: tuple[str, ...]) -> str:
	text = str(value).strip()
	for choice in choices:
		if text.lower() == choice.lower():
			return choice
	raise ValueError(f"{value!r} is not one of {', '.join(choices)}")


#============================================
def _to_bounded_int(value, low: int, high: int | None = None) -> int:
	result = max(low, round(_to_number(value)))
	if high is not None:
		result = min(high, result)
	return int(result)


#============================================
def convert_value(field_name: str, value, settings: LabelSettings):
	"""
	Validate and convert one canonical field value.

	Args:
		field_name: Canonical wire field.
		value: Raw value.
		settings: Active label settings, used for media clamps.

	Returns:
		Converted value ready to store on the item.
	"""
	if field_name in ("text", "data", "imageData", "imageName"):
		if value is None:
			raise TypeError(f"{field_name} must not be null")
		return str(value)
	if field_name in ("fontFamily", "iconId", "imageDither", "imageSmoothing"):
		text = str(value).strip()
		if not text:
			raise ValueError(f"{field_name} must not be empty")
		return text
	if field_name == "barcodeFormat":
		return str(value).strip().upper()
	if field_name == "qrEncodingMode":
		return str(value).strip().lower()
	if field_name == "qrErrorCorrectionLevel":
		return _to_choice(value, ERROR_CORRECTION_LEVELS)
	if field_name == "shapeType":
		return _to_choice(value, SHAPE_TYPES)
	if field_name == "positionMode":
		return _to_choice(value, POSITION_MODES)
	if field_name in ("xOffset", "yOffset"):
		return round(_to_number(value))
	if field_name == "rotation":
		return normalize_degrees(_to_number(value))
	if field_name in ("width", "height"):
		return _to_bounded_int(value, 1)
	if field_name == "fontSize":
		return _to_bounded_int(value, MIN_FONT_SIZE)
	if field_name == "size":
		return lrk.media.clamp_qr_size(_to_number(value), settings)
	if field_name == "qrVersion":
		return _to_bounded_int(value, 0, MAX_QR_VERSION)
	if field_name in ("barcodeModuleWidth", "strokeWidth"):
		return _to_bounded_int(value, 1)
	if field_name in ("barcodeMargin", "cornerRadius"):
		return _to_bounded_int(value, 0)
	if field_name == "imageThreshold":
		return _to_bounded_int(value, 0, 255)
	if field_name == "sides":
		return _to_bounded_int(value, 3, 12)
	if field_name in (
		"textBold",
		"textItalic",
		"textUnderline",
		"textStrikethrough",
		"barcodeShowText",
		"imageInvert",
	):
		return _to_boolean(value)
	raise ValueError(f"Unsupported field: {field_name}")


#============================================
def apply_item_changes(item: LabelItem, raw: dict, settings: LabelSettings) -> ChangeReport:
	"""
	Apply an alias-tolerant change payload to an item.

	QR items fold width/height into size: an explicit size wins, otherwise
	the smaller of the supplied width/height is used. Fields that do not
	belong to the item type are ignored; unknown keys are reported.

	Args:
		item: Item to mutate in place.
		raw: Raw change payload.
		settings: Active label settings.

	Returns:
		ChangeReport listing applied, unknown and ignored fields.

	Raises:
		ValueError: A value cannot be converted for its field.
		TypeError: A value has an unusable type.
	"""
	normalized, unknown = resolve_canonical_changes(raw)
	report = ChangeReport(unknown=unknown)
	if isinstance(item, QrItem):
		candidates = [normalized.pop(key) for key in ("width", "height") if key in normalized]
		if "size" not in normalized and candidates:
			normalized["size"] = min(_to_number(value) for value in candidates)
	converted: dict = {}
	for field_name, value in normalized.items():
		if field_name not in item.FIELDS:
			report.ignored.append(field_name)
			continue
		converted[field_name] = convert_value(field_name, value, settings)
	# nothing is written unless every value converted
	for field_name, value in converted.items():
		setattr(item, attribute_name(field_name), value)
		report.applied.append(field_name)
	return report
