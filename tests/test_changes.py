import pytest

import label_rebuild_kit.changes as changes
import label_rebuild_kit.config as config
import label_rebuild_kit.items as items
import label_rebuild_kit.session as session


#============================================
def _settings() -> config.LabelSettings:
	return config.LabelSettings(media="W24")


#============================================
def test_alias_table_targets_canonical_fields() -> None:
	"""
	Every alias resolves to a field some item type declares.
	"""
	for alias, target in changes.FIELD_ALIASES.items():
		assert target in changes.CANONICAL_FIELDS, alias
		assert alias not in changes.CANONICAL_FIELDS


#============================================
def test_action_aliases_and_payload_extraction() -> None:
	"""
	Verb aliases map to canonical verbs and nested payloads win over top-level keys.
	"""
	assert changes.normalize_action_name("Add") == "add_item"
	assert changes.normalize_action_name("delete-item") == "remove_item"
	assert changes.normalize_action_name("clear all") == "clear_items"
	nested = {"action": "update_item", "itemId": "last", "changes": {"text": "A", "id": "x"}, "fontSize": 9}
	assert changes.extract_changes_payload(nested) == {"text": "A"}
	flat = {"action": "update_item", "target": "last", "text": "B", "bold": True}
	assert changes.extract_changes_payload(flat) == {"text": "B", "bold": True}


#============================================
def test_structured_style_and_aliases_resolve() -> None:
	"""
	Nested style objects, CSS-like weights and aliases become canonical fields.
	"""
	normalized, unknown = changes.resolve_canonical_changes({
		"content": "Hello",
		"style": {"bold": True, "underline": "yes"},
		"fontWeight": 300,
		"position": {"x": 10, "y": 3},
		"sparkle": 1,
	})
	assert normalized["text"] == "Hello"
	assert normalized["textBold"] is True
	assert normalized["textUnderline"] == "yes"
	assert normalized["xOffset"] == 10
	assert normalized["yOffset"] == 3
	assert unknown == ["sparkle"]


#============================================
def test_canonical_key_wins_over_alias() -> None:
	"""
	An explicit canonical field is never overridden by an alias.
	"""
	normalized, _unknown = changes.normalize_change_keys({"bold": False, "textBold": True})
	assert normalized["textBold"] is True


#============================================
def test_qr_width_and_height_fold_into_size() -> None:
	"""
	QR items keep a single size; the smaller requested side wins.
	"""
	qr = items.create_item("qr", "qr-1", _settings())
	report = changes.apply_item_changes(qr, {"width": 90, "height": 70}, _settings())
	assert qr.size == 70
	assert report.applied == ["size"]
	changes.apply_item_changes(qr, {"width": 40, "size": 100}, _settings())
	assert qr.size == 100
	data = qr.to_dict()
	assert data["height"] == data["size"] == 100
	assert "width" not in data


#============================================
def test_qr_size_clamped_to_media() -> None:
	"""
	Requested QR sizes larger than the tape are clamped.
	"""
	qr = items.create_item("qr", "qr-1", config.LabelSettings(media="W12"))
	changes.apply_item_changes(qr, {"size": 400}, config.LabelSettings(media="W12"))
	assert qr.size == 70


#============================================
def test_invalid_value_leaves_item_untouched() -> None:
	"""
	A payload with one bad value does not partially apply.
	"""
	text = items.create_item("text", "text-1", _settings())
	with pytest.raises(ValueError):
		changes.apply_item_changes(text, {"text": "Changed", "fontSize": "huge"}, _settings())
	assert text.text == config.DEFAULT_TEXT


#============================================
def test_foreign_fields_are_ignored_not_unknown() -> None:
	"""
	Fields of another item type are ignored; unknown keys are reported.
	"""
	text = items.create_item("text", "text-1", _settings())
	report = changes.apply_item_changes(text, {"size": 30, "wobble": 2, "bold": "true"}, _settings())
	assert report.ignored == ["size"]
	assert report.unknown == ["wobble"]
	assert text.text_bold is True


#============================================
def test_infer_item_type_from_payload() -> None:
	"""
	The payload keys decide which item type an update would create.
	"""
	assert changes.infer_item_type({"text": "A"}) == "text"
	assert changes.infer_item_type({"data": "https://example.org"}) == "qr"
	assert changes.infer_item_type({"barcodeFormat": "EAN13", "data": "1"}) == "barcode"
	assert changes.infer_item_type({"shape": "oval"}) == "shape"
	assert changes.infer_item_type({"icon": "star"}) == "icon"


#============================================
def test_explicit_placement_detection() -> None:
	"""
	Offsets or absolute mode count as explicit placement.
	"""
	assert changes.changes_have_explicit_placement({"x": 3})
	assert changes.changes_have_explicit_placement({"positionMode": "absolute"})
	assert not changes.changes_have_explicit_placement({"text": "A"})


#============================================
def test_session_ids_are_typed_and_unique() -> None:
	"""
	Persistent ids carry the item type and never repeat after removal.
	"""
	label = session.LabelSession(_settings())
	first = label.add_text_item()
	qr = label.add_qr_item()
	assert (first.id, qr.id) == ("text-1", "qr-2")
	label.remove_items([first.id])
	again = label.add_text_item()
	assert again.id == "text-3"
	assert label.item_ids() == ["qr-2", "text-3"]


#============================================
def test_load_items_reports_unknown_fields() -> None:
	"""
	Wire dicts load into items and unknown keys are collected.
	"""
	label = session.LabelSession(_settings())
	unknown = session.load_items(label, [
		{"type": "text", "text": "Shelf", "fontSize": 18, "glow": True},
		{"type": "qr", "data": "A-1", "size": 60},
	])
	assert unknown == ["glow"]
	assert label.items[0].text == "Shelf"
	assert label.items[1].size == 60
