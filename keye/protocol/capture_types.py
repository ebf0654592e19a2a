"""Capture snapshot type definitions.

These TypedDicts describe the data observers receive: one entry per site
identity, each grouping captured credential headers by the origin that
served them.
"""

from __future__ import annotations

from typing import Union

from typing_extensions import NotRequired, TypedDict

TabId = Union[int, str]

# origin -> header key -> last observed value
HeadersByOrigin = dict[str, dict[str, str]]


class CaptureRecord(TypedDict):
    """Serialized state of a single capture session."""

    headersByOrigin: HeadersByOrigin
    tabId: TabId
    capturedAt: str
    active: bool


# siteId -> capture record
CaptureSnapshot = dict[str, CaptureRecord]


class ExportPayload(TypedDict):
    """Clipboard-ready view of one site's captured credentials."""

    tab: str
    capturedAt: str
    origins: dict[str, dict[str, str]]
    warning: NotRequired[str]
