"""
Tests for settings validation at startup
"""
import pytest
from pydantic import ValidationError

from jobmatch.config import Settings


class TestSettings:

    @pytest.mark.parametrize("mode", ["substring", "token"])
    def test_known_match_modes_accepted(self, mode):
        assert Settings(_env_file=None, MATCH_MODE=mode).MATCH_MODE == mode

    def test_unknown_match_mode_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MATCH_MODE="fuzzy")

    def test_unknown_match_mode_from_environment_rejected(self, monkeypatch):
        monkeypatch.setenv("MATCH_MODE", "fuzzy")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
