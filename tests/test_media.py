import label_rebuild_kit.config as config
import label_rebuild_kit.media as media


#============================================
def test_qr_size_limits_follow_media() -> None:
	"""
	The QR ceiling is the print area, tightened by a fixed label length.
	"""
	wide = config.LabelSettings(media="W24")
	narrow = config.LabelSettings(media="W12")
	short = config.LabelSettings(media="W24", media_length_mm=10.0)
	assert media.compute_max_qr_size_dots(wide) == 128
	assert media.compute_initial_qr_size_dots(wide) == 120
	assert media.compute_initial_qr_size_dots(narrow) == 70
	# 10 mm at 180 dpi is 71 dots, minus feed padding
	assert media.compute_max_qr_size_dots(short) == 61
	assert media.clamp_qr_size(500, wide) == 128
	assert media.clamp_qr_size(0.2, wide) == 1


#============================================
def test_length_dots_respects_resolution_minimum() -> None:
	"""
	Fixed lengths convert with the feed resolution and never fall below the minimum.
	"""
	assert media.compute_length_dots(config.LabelSettings()) is None
	assert media.compute_length_dots(config.LabelSettings(media_length_mm=50.0)) == 354
	assert media.compute_length_dots(config.LabelSettings(media_length_mm=1.0)) == 31
	assert media.compute_length_dots(config.LabelSettings(resolution="HIGH", media_length_mm=1.0)) == 62


#============================================
def test_prominence_floors_scale_with_tape_width() -> None:
	"""
	Floors shrink on narrow tape but stay above their minimums.
	"""
	wide = media.resolve_prominence_floors(config.LabelSettings(media="W24"))
	narrow = media.resolve_prominence_floors(config.LabelSettings(media="W6"))
	assert wide.barcode_width == 240
	assert wide.barcode_height == 40
	assert narrow.barcode_width < wide.barcode_width
	assert narrow.token_font_size >= config.PROMINENCE_TOKEN_FONT_MIN


#============================================
def test_preferred_media_from_prompt_text() -> None:
	"""
	Tape widths are read from media ids and millimetre mentions.
	"""
	assert media.resolve_preferred_media("print on W12 please") == "W12"
	assert media.resolve_preferred_media("use 24mm tape") == "W24"
	assert media.resolve_preferred_media("a 9 mm label") == "W9"
	assert media.resolve_preferred_media("18 tape") == "W18"
	assert media.resolve_preferred_media("7mm") is None
	assert media.resolve_preferred_media(None) is None
