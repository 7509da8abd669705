from webact.tools.builtin.browser import BrowserToolExecutor
from webact.tools.builtin.driver import DriverToolExecutor
from webact.tools.builtin.file_system import FileSystemToolExecutor
from webact.tools.builtin.shell import ShellToolExecutor
from webact.tools.builtin.system import SystemToolExecutor

__all__ = [
	'BrowserToolExecutor',
	'DriverToolExecutor',
	'FileSystemToolExecutor',
	'ShellToolExecutor',
	'SystemToolExecutor',
]
