"""User-agent handoff for the authorization flow.

The flow controller never opens a browser or edits a location itself; it
asks a :class:`Navigator`. The CLI uses :class:`BrowserNavigator`, tests
and headless callers use :class:`NullNavigator`, and an embedding UI can
supply its own subclass to route the user however it likes.
"""

from __future__ import annotations

import threading
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlsplit, urlunsplit


class Navigator(ABC):
    """Sends the user agent to the provider and tracks where it came back.

    :attr:`location` is the URL the user agent is currently showing for the
    app, typically the redirect target with ``?code=...`` attached.
    """

    def __init__(self) -> None:
        self._location: Optional[str] = None

    @property
    def location(self) -> Optional[str]:
        return self._location

    def set_location(self, url: Optional[str]) -> None:
        self._location = url

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Hand the user agent off to *url*. Control does not come back here."""
        ...

    def clear_query(self) -> None:
        """Drop the query string and fragment from :attr:`location`."""
        if not self._location:
            return
        parts = urlsplit(self._location)
        self._location = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class BrowserNavigator(Navigator):
    """Open the authorization URL in the system browser.

    The browser is launched from a daemon thread so that a slow browser
    start never delays the loopback receiver.
    """

    def navigate(self, url: str) -> None:
        thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
        thread.start()


class NullNavigator(Navigator):
    """Record navigation requests without acting on them."""

    def __init__(self) -> None:
        super().__init__()
        self.visited: list[str] = []

    def navigate(self, url: str) -> None:
        self.visited.append(url)
