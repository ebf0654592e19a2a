"""Control channel, host event and broadcast message definitions."""

from __future__ import annotations

from enum import Enum

from typing_extensions import NotRequired, TypedDict

from keye.protocol.capture_types import CaptureSnapshot, ExportPayload, TabId


class MessageType(str, Enum):
    """Message type discriminators used on the control channel."""

    # observer -> coordinator
    START_CAPTURE = 'START_CAPTURE'
    STOP_CAPTURE = 'STOP_CAPTURE'
    GET_STATE = 'GET_STATE'
    CLEAR_DOMAIN = 'CLEAR_DOMAIN'
    CLEAR_ALL = 'CLEAR_ALL'
    SETTINGS_UPDATE = 'SETTINGS_UPDATE'
    SCHEDULE_CLIPBOARD_CLEAR = 'SCHEDULE_CLIPBOARD_CLEAR'
    EXPORT = 'EXPORT'

    # coordinator -> observers
    STATE_UPDATE = 'STATE_UPDATE'
    CLEAR_CLIPBOARD = 'CLEAR_CLIPBOARD'
    EXPORT_RESULT = 'EXPORT_RESULT'


class HostEvent(str, Enum):
    """Wire names for header events delivered by the host bridge."""

    REQUEST_HEADERS_SENT = 'REQUEST_HEADERS_SENT'
    RESPONSE_HEADERS_RECEIVED = 'RESPONSE_HEADERS_RECEIVED'


class HeaderEntry(TypedDict):
    """HTTP header name-value pair as reported by the host."""

    name: str
    value: NotRequired[str]


class RequestHeadersEvent(TypedDict):
    """Fired for each outgoing request once its headers are final."""

    tabId: TabId
    url: str
    requestHeaders: NotRequired[list[HeaderEntry]]


class ResponseHeadersEvent(TypedDict):
    """Fired for each response when its headers arrive."""

    tabId: TabId
    url: str
    responseHeaders: NotRequired[list[HeaderEntry]]


class SettingsPayload(TypedDict, total=False):
    """Persisted configuration keys."""

    autoClearMinutes: float
    clipboardClearMinutes: float


class StartCaptureMessage(TypedDict):
    type: str
    domain: str
    tabId: TabId


class DomainMessage(TypedDict):
    """STOP_CAPTURE and CLEAR_DOMAIN."""

    type: str
    domain: str


class SettingsUpdateMessage(TypedDict):
    type: str
    settings: SettingsPayload


class ExportMessage(TypedDict):
    type: str
    domain: NotRequired[str]


class StateUpdateMessage(TypedDict):
    type: str
    captures: CaptureSnapshot


class ExportResultMessage(TypedDict):
    type: str
    payload: ExportPayload | list[ExportPayload] | None
