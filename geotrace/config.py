"""Runtime configuration for geotrace, read from the environment (.env supported)."""
from __future__ import annotations

import dataclasses
import logging
import os

import voluptuous as vol
from dotenv import load_dotenv

from .const import (
    COMPLETION_API_URL,
    ELEVATION_API_URL,
    ELEVATION_MAX_SPLIT_DEPTH,
    MIN_REQUEST_DELAY,
    OVERPASS_API_URL,
    REQUEST_ATTEMPTS,
    REQUEST_TIMEOUT,
)

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "GEOTRACE_"

url_validator = vol.All(str, vol.Length(min=1), vol.Match(r"^https?://"))
positive_int = vol.All(vol.Coerce(int), vol.Range(min=1))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required("completion_url", default=COMPLETION_API_URL): url_validator,
        vol.Required("overpass_url", default=OVERPASS_API_URL): url_validator,
        vol.Required("elevation_url", default=ELEVATION_API_URL): url_validator,
        vol.Required("min_request_delay", default=MIN_REQUEST_DELAY): vol.All(vol.Coerce(float), vol.Range(min=0)),
        vol.Required("request_timeout", default=REQUEST_TIMEOUT): positive_int,
        vol.Required("request_attempts", default=REQUEST_ATTEMPTS): positive_int,
        vol.Required("elevation_max_split_depth", default=ELEVATION_MAX_SPLIT_DEPTH): positive_int,
    }
)


@dataclasses.dataclass(frozen=True)
class GeoTraceConfig:
    completion_url: str = COMPLETION_API_URL
    overpass_url: str = OVERPASS_API_URL
    elevation_url: str = ELEVATION_API_URL
    min_request_delay: float = MIN_REQUEST_DELAY
    request_timeout: int = REQUEST_TIMEOUT
    request_attempts: int = REQUEST_ATTEMPTS
    elevation_max_split_depth: int = ELEVATION_MAX_SPLIT_DEPTH


def load_config(env_file: str | None = None, **overrides) -> GeoTraceConfig:
    """
    Build a validated configuration.

    Values come from GEOTRACE_* environment variables (after loading
    env_file or a .env in the working directory); keyword overrides win.

    Raises:
        vol.Invalid: if any value fails validation
    """
    load_dotenv(env_file)

    raw = {}
    for field in dataclasses.fields(GeoTraceConfig):
        value = os.getenv(ENV_PREFIX + field.name.upper())
        if value is not None and value != "":
            raw[field.name] = value
    raw.update({k: v for k, v in overrides.items() if v is not None})

    config = GeoTraceConfig(**CONFIG_SCHEMA(raw))
    _LOGGER.debug("Loaded configuration: %s", config)
    return config
