"""
Text and geometry helpers shared by the normalization passes.
"""

# Standard Library
import re
import unicodedata

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.items


PreviewSize = lrk.geometry.PreviewSize
TextItem = lrk.items.TextItem

MIN_PREVIEW_WIDTH = lrk.config.MIN_PREVIEW_WIDTH
MIN_PREVIEW_HEIGHT = lrk.config.MIN_PREVIEW_HEIGHT
DEFAULT_PREVIEW_WIDTH = lrk.config.DEFAULT_PREVIEW_WIDTH
DEFAULT_PREVIEW_HEIGHT = lrk.config.DEFAULT_PREVIEW_HEIGHT
AGGREGATE_MIN_LINES = lrk.config.AGGREGATE_MIN_LINES
AGGREGATE_MIN_LENGTH = lrk.config.AGGREGATE_MIN_LENGTH
AGGREGATE_MIN_FRAGMENT_LENGTH = lrk.config.AGGREGATE_MIN_FRAGMENT_LENGTH
AGGREGATE_MIN_CONTAINED_ROWS = lrk.config.AGGREGATE_MIN_CONTAINED_ROWS

LEADING_MARKER_PATTERN = re.compile(r"^\s*(?:(?:[☐□▢◻]|\[\s*\])\s*|[-*•]\s+)")
WHITESPACE_PATTERN = re.compile(r"\s+")


#============================================
def normalize_text(value: str) -> str:
	"""
	Normalize free text for structural matching.

	Accents are stripped, case is folded and whitespace collapsed.

	Args:
		value: Input text.

	Returns:
		Normalized text.
	"""
	if not value:
		return ""
	decomposed = unicodedata.normalize("NFD", str(value))
	stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
	return WHITESPACE_PATTERN.sub(" ", stripped.lower()).strip()


#============================================
def non_empty_lines(value: str) -> list[str]:
	"""
	Split text into trimmed non-empty lines.
	"""
	return [line.strip() for line in str(value or "").split("\n") if line.strip()]


#============================================
def has_leading_marker(line: str) -> bool:
	"""
	Check whether a line starts with a checkbox or bullet marker.
	"""
	return LEADING_MARKER_PATTERN.match(str(line or "")) is not None


#============================================
def strip_leading_marker(value: str) -> str:
	"""
	Remove a checkbox or bullet marker from the start of each line.

	Args:
		value: Text that may start with markers like "[ ]" or "-".

	Returns:
		Text without leading markers.
	"""
	lines = str(value or "").split("\n")
	return "\n".join(LEADING_MARKER_PATTERN.sub("", line) for line in lines)


#============================================
def find_duplicated_aggregate_text_item(items: list) -> TextItem | None:
	"""
	Find a monolithic text block that repeats separately emitted rows.

	Args:
		items: Item list.

	Returns:
		The aggregate TextItem, or None.
	"""
	texts = lrk.items.texts_of(items)
	if len(texts) < 2:
		return None
	rows = [(item, normalize_text(item.text), len(non_empty_lines(item.text))) for item in texts]
	candidates = [
		row for row in rows
		if row[2] >= AGGREGATE_MIN_LINES and len(row[1]) >= AGGREGATE_MIN_LENGTH
	]
	candidates.sort(key=lambda row: row[2], reverse=True)
	for candidate, candidate_text, _line_count in candidates:
		contained = 0
		for item, normalized, _count in rows:
			if item.id == candidate.id or len(normalized) < AGGREGATE_MIN_FRAGMENT_LENGTH:
				continue
			if normalized in candidate_text:
				contained += 1
		if contained >= AGGREGATE_MIN_CONTAINED_ROWS:
			return candidate
	return None


#============================================
def find_repeated_aggregate_items(items: list) -> list[TextItem]:
	"""
	Find later copies of long multi-line text blocks.

	Args:
		items: Item list.

	Returns:
		Text items whose normalized text repeats an earlier aggregate block.
	"""
	seen: set[str] = set()
	repeats: list[TextItem] = []
	for item in lrk.items.texts_of(items):
		normalized = normalize_text(item.text)
		if len(normalized) < AGGREGATE_MIN_LENGTH:
			continue
		if normalized in seen:
			repeats.append(item)
			continue
		seen.add(normalized)
	return repeats


#============================================
def is_heading_text(value: str) -> bool:
	"""
	Check whether text reads as a field heading ending with a colon.
	"""
	lines = non_empty_lines(value)
	if not lines:
		return False
	return lines[-1].endswith(":") or lines[-1].endswith("：")


#============================================
def resolve_preview_size(preview: PreviewSize | None) -> PreviewSize:
	"""
	Apply the minimum preview extent used for layout decisions.

	Args:
		preview: Preview size reported by the renderer.

	Returns:
		PreviewSize with floors applied.
	"""
	if preview is None:
		return PreviewSize(float(DEFAULT_PREVIEW_WIDTH), float(DEFAULT_PREVIEW_HEIGHT), True)
	return PreviewSize(
		max(float(MIN_PREVIEW_WIDTH), float(preview.width)),
		max(float(MIN_PREVIEW_HEIGHT), float(preview.height)),
		preview.extendable,
	)
