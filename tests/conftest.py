"""
Pytest configuration for local imports and shared label fixtures.
"""

# Standard Library
import os
import sys

# PIP3 modules
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

# local repo modules
import label_rebuild_kit.config  # noqa: E402
import label_rebuild_kit.session  # noqa: E402


#============================================
@pytest.fixture
def w24_session() -> label_rebuild_kit.session.LabelSession:
	"""
	Empty auto-length session on 24 mm tape.
	"""
	settings = label_rebuild_kit.config.LabelSettings(media="W24")
	return label_rebuild_kit.session.LabelSession(settings)
