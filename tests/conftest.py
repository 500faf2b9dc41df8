import os
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest

from src.uploader.config import UploaderSettings
from src.uploader.models import SelectorRole, StageStatus
from src.uploader.workflow import StageSet


class FakeElement:
    """In-memory element; methods listed in ``failing`` raise when called."""

    def __init__(
        self,
        text: str = "",
        *,
        visible: bool = True,
        enabled: bool = True,
        label: str = "",
        attributes: Optional[Dict[str, str]] = None,
        failing: Iterable[str] = (),
        on_click: Optional[Callable[[], None]] = None,
    ):
        self._text = text
        self.visible = visible
        self.enabled = enabled
        self.label = label
        self.attributes = dict(attributes or {})
        self.failing = set(failing)
        self.on_click = on_click
        self.calls: List[str] = []
        self.value: Optional[str] = None
        self.files: List[str] = []

    def _act(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"{name} was not delivered")

    def is_visible(self) -> bool:
        return self.visible

    def is_enabled(self) -> bool:
        return self.enabled

    def text(self) -> str:
        return self._text

    def label_text(self) -> str:
        return self.label

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def click(self) -> None:
        self._act("click")
        if self.on_click:
            self.on_click()

    def force_click(self) -> None:
        self._act("force_click")
        if self.on_click:
            self.on_click()

    def script_click(self) -> None:
        self._act("script_click")
        if self.on_click:
            self.on_click()

    def fill(self, value: str) -> None:
        self._act("fill")
        self.value = value

    def press(self, key: str) -> None:
        self._act(f"press:{key}")

    def set_files(self, path: str) -> None:
        self._act("set_files")
        self.files.append(path)


class FakeBrowser:
    """Browser double whose page is a registry of elements keyed by locator."""

    def __init__(self):
        self.elements: Dict[Tuple[str, str], List[FakeElement]] = {}
        self.broken_locators: set = set()
        self.queries: List[Tuple[str, str]] = []
        self.connected = False
        self.page_closed = True
        self.opened = 0
        self.closed = 0
        self.visited: List[str] = []
        self.url = ""
        self.page_title = "TA Summary"
        self.keys: List[str] = []
        self.failing_keys: set = set()
        self.screenshots: List[str] = []
        self.auth_state = {"cookies": [{"name": "sid", "value": "abc"}], "localStorage": {"token": "t"}}
        self.applied_states: List[dict] = []

    # --- Test helpers ---
    def add(self, by: str, value: str, element: Optional[FakeElement] = None) -> FakeElement:
        element = element or FakeElement()
        self.elements.setdefault((by, value), []).append(element)
        return element

    def show(self, role: SelectorRole, element: Optional[FakeElement] = None, candidate: int = 0) -> FakeElement:
        """Register ``element`` under the locator of one of ``role``'s candidates."""
        chosen = role.candidates[candidate]
        return self.add(chosen.by, chosen.value, element)

    def hide(self, role: SelectorRole) -> None:
        for candidate in role.candidates:
            self.elements.pop((candidate.by, candidate.value), None)

    def crash(self) -> None:
        self.connected = False
        self.page_closed = True

    # --- Browser interface ---
    def open(self) -> None:
        self.opened += 1
        self.connected = True
        self.page_closed = False

    def close(self) -> None:
        self.closed += 1
        self.connected = False
        self.page_closed = True

    def is_connected(self) -> bool:
        return self.connected

    def is_page_closed(self) -> bool:
        return self.page_closed

    def goto(self, url: str) -> None:
        self.visited.append(url)
        self.url = url

    def current_url(self) -> str:
        return self.url

    def title(self) -> str:
        return self.page_title

    def query(self, by: str, value: str) -> List[FakeElement]:
        self.queries.append((by, value))
        if (by, value) in self.broken_locators:
            raise RuntimeError(f"invalid selector: {value}")
        return list(self.elements.get((by, value), []))

    def wait_for_settle(self, timeout: float) -> bool:
        return True

    def pause(self, seconds: float) -> None:
        return None

    def press_key(self, key: str) -> None:
        self.keys.append(key)
        if key in self.failing_keys:
            raise RuntimeError(f"key {key} was not delivered")

    def screenshot(self, path: str) -> None:
        self.screenshots.append(path)
        with open(path, "wb") as f:
            f.write(b"png")

    def get_auth_state(self) -> dict:
        return dict(self.auth_state)

    def apply_auth_state(self, state: dict, base_url: str) -> None:
        self.applied_states.append(state)


class StubStages:
    """Records stage calls; ``failures`` maps a stage name to exceptions raised on successive calls."""

    def __init__(self):
        self.calls: List[str] = []
        self.failures = {}
        self.select_result = StageStatus.SUCCEEDED
        self.before = {}

    def _hit(self, name: str, browser):
        self.calls.append(name)
        hook = self.before.get(name)
        if hook:
            hook(browser)
        queue = self.failures.get(name)
        if queue:
            exc = queue.pop(0) if isinstance(queue, list) else queue
            if exc is not None:
                raise exc

    def stage_set(self) -> StageSet:
        stubs = self

        class _Simple:
            def __init__(self, name, browser, settings):
                self.name, self.browser = name, browser

            def execute(self, *args):
                stubs._hit(self.name, self.browser)
                if self.name == "select_record":
                    return stubs.select_result
                return StageStatus.SUCCEEDED

        class _Upload:
            def __init__(self, browser, settings):
                self.browser = browser

            def upload(self, path):
                stubs._hit("upload", self.browser)
                return StageStatus.SUCCEEDED

            def save(self):
                stubs._hit("save", self.browser)
                return StageStatus.SUCCEEDED

        return StageSet(
            authenticate=lambda b, s: _Simple("authenticate", b, s),
            navigate=lambda b, s: _Simple("navigate", b, s),
            search=lambda b, s: _Simple("search", b, s),
            select_record=lambda b, s: _Simple("select_record", b, s),
            upload=_Upload,
        )


@pytest.fixture()
def settings(tmp_path) -> UploaderSettings:
    """Fast, isolated settings: no waits, no real delays, paths under tmp_path."""
    return UploaderSettings().model_copy(
        update={
            "base_url": "https://ta.example.test",
            "pdf_folder": str(tmp_path / "pdfs"),
            "username": "",
            "password": "",
            "ta_year": "2025",
            "headless": True,
            "slow_mo_ms": 0,
            "default_timeout": 0,
            "resolve_timeout": 0.0,
            "settle_timeout": 0.01,
            "teardown_timeout": 0.5,
            "max_retry_attempts": 3,
            "retry_delay_ms": 0,
            "enable_screenshots": False,
            "screenshot_dir": str(tmp_path / "shots"),
            "auth_state_file": str(tmp_path / "state" / "auth_state.json"),
            "dry_run": False,
        }
    )


@pytest.fixture()
def browser() -> FakeBrowser:
    fake = FakeBrowser()
    fake.open()
    return fake


@pytest.fixture()
def browser_factory():
    """Factory for SessionManager that hands out fresh FakeBrowsers and keeps them in ``.created``."""

    class _Factory:
        def __init__(self):
            self.created: List[FakeBrowser] = []
            self.prepare: Optional[Callable[[FakeBrowser], None]] = None
            self.fail_on_open_from: Optional[int] = None

        def __call__(self, settings: UploaderSettings) -> FakeBrowser:
            fake = FakeBrowser()
            number = len(self.created) + 1
            if self.fail_on_open_from is not None and number >= self.fail_on_open_from:
                def _broken_open():
                    raise RuntimeError("chrome failed to start")
                fake.open = _broken_open
            if self.prepare:
                self.prepare(fake)
            self.created.append(fake)
            return fake

    return _Factory()


@pytest.fixture()
def pdf_folder(settings):
    os.makedirs(settings.pdf_folder, exist_ok=True)
    return settings.pdf_folder
