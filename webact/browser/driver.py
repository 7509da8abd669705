from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from webact.browser.views import BrowserUseState, InteractiveElement


@runtime_checkable
class BrowserDriver(Protocol):
	"""The page-level driver the agent observes and acts through.

	Only the observation hooks are required. Page actions (click, fill, navigateTo, ...)
	are looked up on the driver by the `driver` tool domain and reported as tool errors
	when missing.
	"""

	async def get_browser_use_state(self) -> BrowserUseState: ...

	async def capture_screenshot(self) -> str | None: ...

	async def text_content(self, selector: str | None = None) -> str | None: ...

	async def add_highlights(self, elements: list[InteractiveElement]) -> None: ...

	async def remove_highlights(self) -> None: ...


@runtime_checkable
class TabSwitcher(Protocol):
	"""Browser-level target for the `browser` tool domain"""

	async def switch_tab(self, tab_id: str) -> Any: ...
