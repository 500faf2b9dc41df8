"""
Narrow interface to the controllable browser.

Everything above this module (resolver, stages, session manager) talks to a
``Browser``/``Element`` pair and never to a specific automation engine. The
Selenium implementation lives in ``driver.py``; tests use in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class Element(Protocol):
    def is_visible(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    def text(self) -> str:
        """Rendered text, falling back to the ``value`` attribute for inputs."""
        ...

    def label_text(self) -> str:
        """Text of the label associated with (or nearest to) this element."""
        ...

    def get_attribute(self, name: str) -> Optional[str]: ...

    def click(self) -> None: ...

    def force_click(self) -> None: ...

    def script_click(self) -> None: ...

    def fill(self, value: str) -> None:
        """Clear the element and type ``value`` into it."""
        ...

    def press(self, key: str) -> None: ...

    def set_files(self, path: str) -> None: ...


class Browser(Protocol):
    def open(self) -> None: ...

    def close(self) -> None: ...

    def is_connected(self) -> bool: ...

    def is_page_closed(self) -> bool: ...

    def goto(self, url: str) -> None: ...

    def current_url(self) -> str: ...

    def title(self) -> str: ...

    def query(self, by: str, value: str) -> List[Element]:
        """Return all elements matching the locator. May raise on bad selectors."""
        ...

    def wait_for_settle(self, timeout: float) -> bool:
        """Wait until pending navigation/network activity has quiesced."""
        ...

    def pause(self, seconds: float) -> None: ...

    def press_key(self, key: str) -> None:
        """Send a key press to whatever currently has focus."""
        ...

    def screenshot(self, path: str) -> None: ...

    def get_auth_state(self) -> Dict[str, Any]: ...

    def apply_auth_state(self, state: Dict[str, Any], base_url: str) -> None: ...
