#!/usr/bin/env python3
"""Tests for environment variable helpers."""

import os
from unittest.mock import patch

import pytest

from eam_sync_api.core.env_utils import getenv_bool, getenv_clean, getenv_int, getenv_list


@pytest.mark.unit
class TestEnvUtils:

    @patch.dict(os.environ, {"NEO4J_URI": "bolt://graph:7687\r\n"})
    def test_getenv_clean_strips_line_endings(self):
        assert getenv_clean("NEO4J_URI") == "bolt://graph:7687"

    @patch.dict(os.environ, {}, clear=True)
    def test_getenv_clean_default(self):
        assert getenv_clean("MISSING") is None
        assert getenv_clean("MISSING", "fallback") == "fallback"

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("YES", True), ("1", True), ("on", True),
        ("false", False), ("0", False), ("off", False), ("", False),
    ])
    def test_getenv_bool(self, raw, expected):
        with patch.dict(os.environ, {"FLAG": raw}):
            assert getenv_bool("FLAG", default=not expected) is expected

    @patch.dict(os.environ, {"FLAG": "maybe"})
    def test_getenv_bool_unexpected_value_uses_default(self):
        assert getenv_bool("FLAG", default=True) is True

    @patch.dict(os.environ, {"SIZE": "42", "SMALL": "0", "BAD": "4x"})
    def test_getenv_int(self):
        assert getenv_int("SIZE", 1) == 42
        assert getenv_int("SMALL", 7, minimum=1) == 7
        assert getenv_int("BAD", 3) == 3
        assert getenv_int("UNSET_INT", 9) == 9

    @patch.dict(os.environ, {"CORS_ORIGINS": "http://a, ,http://b,"})
    def test_getenv_list(self):
        assert getenv_list("CORS_ORIGINS") == ["http://a", "http://b"]
        assert getenv_list("UNSET_LIST", ["x"]) == ["x"]
