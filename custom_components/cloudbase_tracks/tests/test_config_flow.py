"""
Unit tests for config_flow.py - CustomFlow (initial setup) and OptionsFlowHandler (options editing).

Coverage:
- CustomFlow.async_step_user:
    * GET (no input) → returns FORM with step_id "user"
    * Valid full input → CREATE_ENTRY with correct title, all data fields, and a generated guid
    * Empty entry_name     → FORM with errors["base"] == "entry_name_required"
    * Empty spreadsheet_id → FORM with errors["base"] == "spreadsheet_id_required"
    * Empty api_key        → FORM with errors["base"] == "api_key_required"
    * Unreadable sheet     → FORM with errors["base"] == "cannot_connect" / "invalid_auth"

- OptionsFlowHandler.async_step_init:
    * GET (no input) → returns FORM with step_id "init", defaults come from config_entry.data
    * Defaults from config_entry.options override config_entry.data
    * Valid user input → CREATE_ENTRY, preserves original guid, sets new field values
    * tracker_names selection is saved; choices come from the loaded coordinator

- _validate_credentials maps sheet failures onto error keys
"""

from __future__ import annotations

import unittest
import uuid
from typing import Any, Dict
from unittest.mock import MagicMock, patch, AsyncMock

from homeassistant.data_entry_flow import AbortFlow

from custom_components.cloudbase_tracks.config_flow import (
    CustomFlow,
    OptionsFlowHandler,
    _validate_credentials,
)
from custom_components.cloudbase_tracks.requests import ApiResponseError

from .test_common import make_tracker


VALIDATE = "custom_components.cloudbase_tracks.config_flow._validate_credentials"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_mock_config_entry(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> MagicMock:
    """Return a minimal mock ConfigEntry with .data and .options dicts."""
    entry = MagicMock()
    entry.data = dict(data)
    entry.options = dict(options) if options is not None else {}
    return entry


def _make_flow() -> CustomFlow:
    """Return a CustomFlow instance with a mocked hass and no existing entries."""
    flow = CustomFlow()
    flow.hass = MagicMock()
    flow._async_abort_entries_match = MagicMock()
    return flow


def _make_options_flow(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> OptionsFlowHandler:
    """Return an OptionsFlowHandler instance with a mocked hass."""
    entry = _make_mock_config_entry(data, options)
    handler = OptionsFlowHandler(entry)
    handler.hass = MagicMock()
    return handler


def _schema_defaults(result) -> dict:
    schema = result["data_schema"].schema
    return {
        str(key): key.default()
        for key in schema
        if hasattr(key, "default") and callable(key.default)
    }


VALID_USER_INPUT = {
    "entry_name": "Utah Pilots",
    "spreadsheet_id": "sheet-123",
    "api_key": "key-abc",
    "track_days": 2,
    "include_inactive": False,
}

VALID_ENTRY_DATA = {
    "guid": "existing-guid-1234",
    "entry_name": "Original Name",
    "spreadsheet_id": "original-sheet",
    "api_key": "original-key",
    "track_days": 1,
    "include_inactive": False,
}

VALID_OPTIONS_INPUT = {
    "entry_name": "Updated Name",
    "spreadsheet_id": "updated-sheet",
    "api_key": "updated-key",
    "track_days": 3,
    "include_inactive": True,
}


# ---------------------------------------------------------------------------
# CustomFlow - initial config
# ---------------------------------------------------------------------------

class TestCustomFlow(unittest.IsolatedAsyncioTestCase):
    """Tests for CustomFlow.async_step_user."""

    async def test_shows_form_on_get(self):
        """Calling without input must return a FORM with step_id 'user'."""
        flow = _make_flow()

        result = await flow.async_step_user(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "user")
        self.assertEqual(result.get("errors", {}), {})

    async def test_valid_input_creates_entry(self):
        """Valid full input must create an entry with correct title and all data fields."""
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "create_entry")
        self.assertEqual(result["title"], VALID_USER_INPUT["entry_name"])
        for key, value in VALID_USER_INPUT.items():
            self.assertEqual(result["data"][key], value)

    async def test_creates_entry_with_valid_guid(self):
        """A fresh UUID must be generated and stored as 'guid' in entry data."""
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        generated_guid = result["data"]["guid"]
        self.assertEqual(str(uuid.UUID(generated_guid)), generated_guid)

    async def test_empty_entry_name_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, entry_name=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "entry_name_required")

    async def test_empty_spreadsheet_id_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, spreadsheet_id=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "spreadsheet_id_required")

    async def test_empty_api_key_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, api_key=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "api_key_required")

    async def test_cannot_connect_returns_form_with_error(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value="cannot_connect")):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "cannot_connect")

    async def test_invalid_auth_returns_form_with_error(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value="invalid_auth")):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["errors"]["base"], "invalid_auth")

    async def test_sheet_check_skipped_when_fields_are_empty(self):
        """_validate_credentials must NOT be called when empty-field errors are present."""
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value=None)) as mock_validate:
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT, api_key=""))

        mock_validate.assert_not_called()

    async def test_duplicate_sheet_aborts_flow(self):
        """An entry for the same spreadsheet already exists → AbortFlow propagates."""
        flow = _make_flow()
        flow._async_abort_entries_match = MagicMock(side_effect=AbortFlow("already_configured"))

        with self.assertRaises(AbortFlow) as ctx:
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(str(ctx.exception.reason), "already_configured")

    async def test_duplicate_check_uses_spreadsheet_id_as_key(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        flow._async_abort_entries_match.assert_called_once_with({"spreadsheet_id": "sheet-123"})


# ---------------------------------------------------------------------------
# OptionsFlowHandler - options editing
# ---------------------------------------------------------------------------

class TestOptionsFlowHandler(unittest.IsolatedAsyncioTestCase):
    """Tests for OptionsFlowHandler.async_step_init."""

    async def test_shows_form_on_get(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "init")
        self.assertEqual(result.get("errors", {}), {})

    async def test_form_defaults_come_from_entry_data(self):
        handler = _make_options_flow(VALID_ENTRY_DATA, options={})

        defaults = _schema_defaults(await handler.async_step_init(user_input=None))

        for key in VALID_OPTIONS_INPUT:
            self.assertEqual(defaults[key], VALID_ENTRY_DATA[key])

    async def test_options_override_data_defaults(self):
        handler = _make_options_flow(VALID_ENTRY_DATA, options=dict(VALID_OPTIONS_INPUT))

        defaults = _schema_defaults(await handler.async_step_init(user_input=None))

        for key, value in VALID_OPTIONS_INPUT.items():
            self.assertEqual(defaults[key], value)

    async def test_valid_update_creates_entry(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "create_entry")
        for key, value in VALID_OPTIONS_INPUT.items():
            self.assertEqual(result["data"][key], value)

    async def test_valid_update_preserves_guid(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["data"]["guid"], VALID_ENTRY_DATA["guid"])

    async def test_valid_update_calls_async_update_entry(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        handler.hass.config_entries.async_update_entry.assert_called_once()
        kwargs = handler.hass.config_entries.async_update_entry.call_args.kwargs
        self.assertEqual(kwargs["data"]["guid"], VALID_ENTRY_DATA["guid"])
        self.assertEqual(kwargs["title"], VALID_OPTIONS_INPUT["entry_name"])

    async def test_empty_api_key_returns_form_with_error(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT, api_key=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "api_key_required")

    async def test_cannot_connect_returns_form_with_error(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value="cannot_connect")):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "cannot_connect")
        handler.hass.config_entries.async_update_entry.assert_not_called()

    async def test_tracker_selection_saved(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await handler.async_step_init(
                user_input=dict(VALID_OPTIONS_INPUT, tracker_names=["Alice"])
            )

        self.assertEqual(result["data"]["tracker_names"], ["Alice"])

    async def test_missing_tracker_selection_means_all(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["data"]["tracker_names"], [])

    async def test_tracker_choices_come_from_loaded_coordinator(self):
        handler = _make_options_flow(dict(VALID_ENTRY_DATA, tracker_names=["Zed"]))
        handler._entry.runtime_data.data.trackers = [make_tracker("Carol"), make_tracker("Alice")]

        self.assertEqual(handler._tracker_choices(), ["Alice", "Carol", "Zed"])


# ---------------------------------------------------------------------------
# _validate_credentials
# ---------------------------------------------------------------------------

class TestValidateCredentials(unittest.IsolatedAsyncioTestCase):

    FETCH = "custom_components.cloudbase_tracks.config_flow.fetch_trackers"

    async def test_readable_sheet_returns_none(self):
        with patch(self.FETCH, new=AsyncMock(return_value=[])):
            self.assertIsNone(await _validate_credentials("sheet", "key"))

    async def test_api_error_is_invalid_auth(self):
        with patch(self.FETCH, new=AsyncMock(side_effect=ApiResponseError({"error": {"code": 400}}))):
            self.assertEqual(await _validate_credentials("sheet", "key"), "invalid_auth")

    async def test_timeout_is_cannot_connect(self):
        with patch(self.FETCH, new=AsyncMock(side_effect=TimeoutError())):
            self.assertEqual(await _validate_credentials("sheet", "key"), "cannot_connect")

    async def test_unexpected_response_is_cannot_connect(self):
        with patch(self.FETCH, new=AsyncMock(side_effect=ValueError("html page"))):
            self.assertEqual(await _validate_credentials("sheet", "key"), "cannot_connect")
