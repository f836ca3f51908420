"""Config flow for Cloudbase Tracks integration."""
from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .api.trackers import fetch_trackers
from .const import (
    DOMAIN,
    DEFAULT_TRACK_DAYS,
    MAX_TRACK_DAYS,
    CONF_ENTRY_NAME,
    CONF_SPREADSHEET_ID,
    CONF_API_KEY,
    CONF_TRACK_DAYS,
    CONF_INCLUDE_INACTIVE,
    CONF_TRACKER_NAMES,
)
from .requests import ApiResponseError

track_days = vol.All(vol.Coerce(int), vol.Range(min=1, max=MAX_TRACK_DAYS))

_LOGGER = logging.getLogger(__name__)
CONFIG_SCHEMA = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default='My Cloudbase Trackers'): cv.string,
                vol.Required(CONF_SPREADSHEET_ID, default=''): cv.string,
                vol.Required(CONF_API_KEY, default=''): cv.string,
                vol.Required(CONF_TRACK_DAYS, default=DEFAULT_TRACK_DAYS): track_days,
                vol.Required(CONF_INCLUDE_INACTIVE, default=False): cv.boolean,
            }
        )


async def _validate_credentials(spreadsheet_id: str, api_key: str) -> str | None:
    """
    Read the tracker sheet once.

    Returns None when it can be read, "invalid_auth" when the sheet API rejects
    the key, and "cannot_connect" for anything else.
    """
    try:
        await fetch_trackers(spreadsheet_id, api_key)
    except ApiResponseError as e:
        _LOGGER.warning("Tracker sheet rejected the request: %s", e)
        return "invalid_auth"
    except (asyncio.TimeoutError, TimeoutError) as e:
        _LOGGER.warning("Tracker sheet timed out: %s", e)
        return "cannot_connect"
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Tracker sheet unreachable: %s", e)
        return "cannot_connect"
    return None


def _required_field_error(data: Dict[str, Any]) -> str | None:
    # Checked in form order; the last empty field wins the single base error slot
    error = None
    if not data.get(CONF_ENTRY_NAME):
        error = 'entry_name_required'
    if not data.get(CONF_SPREADSHEET_ID):
        error = 'spreadsheet_id_required'
    if not data.get(CONF_API_KEY):
        error = 'api_key_required'
    return error


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            self.data = user_input
            # Create new guid for the entry
            self.data['guid'] = str(uuid.uuid4())
            error = _required_field_error(self.data)
            if error:
                errors['base'] = error
            else:
                # One entry per tracker sheet
                self._async_abort_entries_match({CONF_SPREADSHEET_ID: self.data[CONF_SPREADSHEET_ID]})
                error = await _validate_credentials(self.data[CONF_SPREADSHEET_ID], self.data[CONF_API_KEY])
                if error:
                    errors['base'] = error
            if not errors:
                return self.async_create_entry(title=f"{self.data[CONF_ENTRY_NAME]}", data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._entry = config_entry

    def _default(self, key: str, fallback: Any) -> Any:
        """Options override data; data overrides the fallback."""
        if key in self._entry.options:
            return self._entry.options[key]
        return self._entry.data.get(key, fallback)

    def _tracker_choices(self) -> list[str]:
        """Tracker names known to the loaded coordinator plus the current selection."""
        choices = []
        coordinator = getattr(self._entry, "runtime_data", None)
        if coordinator is not None:
            choices = [t.name for t in coordinator.data.trackers]
        for name in self._default(CONF_TRACKER_NAMES, []):
            if name not in choices:
                choices.append(name)
        return sorted(choices)

    async def async_step_init(
        self, user_input: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        errors: Dict[str, str] = {}

        if user_input is not None:
            error = _required_field_error(user_input)
            if error:
                errors['base'] = error
            else:
                error = await _validate_credentials(user_input[CONF_SPREADSHEET_ID], user_input[CONF_API_KEY])
                if error:
                    errors['base'] = error
            if not errors:
                new_data = {
                    'guid': self._entry.data['guid'],
                    CONF_ENTRY_NAME: user_input[CONF_ENTRY_NAME],
                    CONF_SPREADSHEET_ID: user_input[CONF_SPREADSHEET_ID],
                    CONF_API_KEY: user_input[CONF_API_KEY],
                    CONF_TRACK_DAYS: user_input[CONF_TRACK_DAYS],
                    CONF_INCLUDE_INACTIVE: user_input[CONF_INCLUDE_INACTIVE],
                    # Empty selection means every tracker
                    CONF_TRACKER_NAMES: list(user_input.get(CONF_TRACKER_NAMES, [])),
                }

                # Rename the entry in the UI
                self.hass.config_entries.async_update_entry(
                    self._entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )

                return self.async_create_entry(title=f"{new_data[CONF_ENTRY_NAME]}", data=new_data)

        OPTIONS_SCHEMA = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default=self._default(CONF_ENTRY_NAME, '')): cv.string,
                vol.Required(CONF_SPREADSHEET_ID, default=self._default(CONF_SPREADSHEET_ID, '')): cv.string,
                vol.Required(CONF_API_KEY, default=self._default(CONF_API_KEY, '')): cv.string,
                vol.Required(CONF_TRACK_DAYS, default=self._default(CONF_TRACK_DAYS, DEFAULT_TRACK_DAYS)): track_days,
                vol.Required(CONF_INCLUDE_INACTIVE, default=self._default(CONF_INCLUDE_INACTIVE, False)): cv.boolean,
                vol.Optional(CONF_TRACKER_NAMES, default=list(self._default(CONF_TRACKER_NAMES, []))): cv.multi_select(
                    self._tracker_choices()
                ),
            }
        )
        return self.async_show_form(step_id="init", data_schema=OPTIONS_SCHEMA, errors=errors)
