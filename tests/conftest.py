import pytest

from helpers import DECK, USER
from tempo.domain.scheduling.models import Deck


@pytest.fixture
def deck():
    return Deck(id=DECK, user_id=USER, name="Biology")


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config
    monkeypatch.setenv("HOME", str(home))
    return home
