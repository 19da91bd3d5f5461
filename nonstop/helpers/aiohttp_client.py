"""Helpers for setting up a aiohttp session (and related)."""

from __future__ import annotations

import sys
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import aiohttp
from aiohttp.hdrs import USER_AGENT

from nonstop.constants import APPLICATION_NAME

from .json import json_dumps

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine


MAXIMUM_CONNECTIONS = 100
MAXIMUM_CONNECTIONS_PER_HOST = 10


def create_clientsession(
    engine: PlaybackEngine,
    **kwargs: Any,
) -> aiohttp.ClientSession:
    """Create a new ClientSession with kwargs, i.e. for cookies."""
    clientsession = aiohttp.ClientSession(
        connector=aiohttp.TCPConnector(
            enable_cleanup_closed=True,
            limit=MAXIMUM_CONNECTIONS,
            limit_per_host=MAXIMUM_CONNECTIONS_PER_HOST,
        ),
        json_serialize=json_dumps,
        **kwargs,
    )
    # Prevent packages accidentally overriding our default headers.
    # If a backend requires a different user agent, override it by passing a headers
    # dictionary to the request method.
    user_agent = (
        f"{APPLICATION_NAME}/{engine.version} "
        f"aiohttp/{aiohttp.__version__} Python/{sys.version_info[0]}.{sys.version_info[1]}"
    )
    clientsession._default_headers = MappingProxyType(  # type: ignore[assignment]
        {USER_AGENT: user_agent},
    )
    return clientsession
