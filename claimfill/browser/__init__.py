"""Browser adapters: page snapshots and write-operation appliers."""

from .snapshot import PageSnapshot, open_page, snapshot_page
from .writers import PageWriter, PlaywrightPageWriter, SoupPageWriter

__all__ = [
    "PageSnapshot",
    "PageWriter",
    "PlaywrightPageWriter",
    "SoupPageWriter",
    "open_page",
    "snapshot_page",
]
