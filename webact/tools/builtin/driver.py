from webact.tools.executor import AbstractToolExecutor
from webact.tools.views import ToolArg, ToolSpec

_SELECTOR = ToolArg(name='selector')

# method, arguments, return type, description
_DRIVER_METHODS: list[tuple[str, list[ToolArg], str, str]] = [
	('navigateTo', [ToolArg(name='url')], 'None', 'Navigate the current tab to a URL.'),
	('click', [_SELECTOR, ToolArg(name='count', type='int', required=False, default=1)], 'None', 'Click the element.'),
	('fill', [_SELECTOR, ToolArg(name='text')], 'None', 'Clear the input and fill it with text.'),
	('type', [_SELECTOR, ToolArg(name='text')], 'None', 'Type text into the element without clearing it.'),
	('press', [_SELECTOR, ToolArg(name='key')], 'None', 'Press a key while the element is focused, e.g. Enter.'),
	('check', [_SELECTOR], 'None', 'Check a checkbox.'),
	('uncheck', [_SELECTOR], 'None', 'Uncheck a checkbox.'),
	('hover', [_SELECTOR], 'None', 'Move the mouse over the element.'),
	('scrollDown', [ToolArg(name='count', type='int', required=False, default=1)], 'None', 'Scroll down by one viewport.'),
	('scrollUp', [ToolArg(name='count', type='int', required=False, default=1)], 'None', 'Scroll up by one viewport.'),
	('scrollToTop', [], 'None', 'Scroll to the top of the page.'),
	('scrollToBottom', [], 'None', 'Scroll to the bottom of the page.'),
	('scrollToMiddle', [ToolArg(name='ratio', type='float', required=False, default=0.5)], 'None', 'Scroll to a ratio of the page height.'),
	('goBack', [], 'None', 'Go back in history.'),
	('goForward', [], 'None', 'Go forward in history.'),
	(
		'waitForSelector',
		[_SELECTOR, ToolArg(name='timeoutMillis', type='int', required=False, default=3000)],
		'int',
		'Wait until the element appears. Returns the remaining time in ms.',
	),
	('exists', [_SELECTOR], 'bool', 'Whether the element exists.'),
	('selectFirstTextOrNull', [_SELECTOR], 'str | None', 'Text content of the first matching element.'),
	('evaluate', [ToolArg(name='expression')], 'any', 'Evaluate a JavaScript expression in the page.'),
	('currentUrl', [], 'str', 'URL of the current page.'),
]


class DriverToolExecutor(AbstractToolExecutor):
	"""Page actions on the bound driver"""

	domain = 'driver'

	def default_specs(self) -> list[ToolSpec]:
		return [
			ToolSpec(domain=self.domain, method=method, arguments=arguments, return_type=return_type, description=description)
			for method, arguments, return_type, description in _DRIVER_METHODS
		]
