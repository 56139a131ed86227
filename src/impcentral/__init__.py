"""
impcentral - client library for the Electric Imp impCentral API (v5).

Provides live device logs through LogStreams.
"""

from impcentral.errors import (
    ImpCentralError, InvalidDataError, InvalidStateError, ImpCentralApiError
)
from impcentral.core.log_streams import LogStreams
from impcentral.models.log_stream import LogStreamFormat, MAX_DEVICES_PER_STREAM
from impcentral.impcentral_api import ImpCentralApi

__version__ = "0.1.0"

__all__ = [
    "ImpCentralApi",
    "LogStreams",
    "LogStreamFormat",
    "MAX_DEVICES_PER_STREAM",
    "ImpCentralError",
    "InvalidDataError",
    "InvalidStateError",
    "ImpCentralApiError",
]
