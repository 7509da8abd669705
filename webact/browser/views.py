from __future__ import annotations

from pydantic import BaseModel, Field


class TabState(BaseModel):
	"""A browser tab as seen by the agent"""

	tab_id: str
	url: str
	title: str = ''
	active: bool = False


class InteractiveElement(BaseModel):
	"""Interactive DOM element the model can target via its locator"""

	locator: str
	tag_name: str = ''
	text: str = ''
	attributes: dict[str, str] = Field(default_factory=dict)
	bounds: tuple[float, float, float, float] | None = None

	def describe(self) -> str:
		text = f' {self.text.strip()[:80]}' if self.text.strip() else ''
		return f'[{self.locator}]<{self.tag_name}>{text}'


class BrowserUseState(BaseModel):
	"""Snapshot of the page the agent is looking at"""

	url: str = ''
	title: str = ''
	tabs: list[TabState] = Field(default_factory=list)
	interactive_elements: list[InteractiveElement] = Field(default_factory=list)
	scroll_y: float = 0.0
	scroll_height: float = 0.0
	viewport_height: float = 0.0

	@property
	def active_tab(self) -> TabState | None:
		return next((tab for tab in self.tabs if tab.active), None)

	def element_by_locator(self, locator: str) -> InteractiveElement | None:
		return next((element for element in self.interactive_elements if element.locator == locator), None)

	def describe(self, max_elements: int = 200) -> str:
		lines = [f'url: {self.url}', f'title: {self.title}']
		if self.tabs:
			lines.append('tabs: ' + ', '.join(f'{tab.tab_id}{"*" if tab.active else ""}:{tab.title or tab.url}' for tab in self.tabs))
		lines.extend(element.describe() for element in self.interactive_elements[:max_elements])
		return '\n'.join(lines)
