import asyncio
import logging
import os
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from webact.config import CONFIG

logger = logging.getLogger(__name__)

DEFAULT_FILE_SYSTEM_PATH = 'webact_agent_data'


def _build_filename_error_message(file_name: str, supported_extensions: list[str]) -> str:
	"""Explain why the filename was rejected and how to fix it."""
	base = os.path.basename(file_name)
	supported = ', '.join('.' + e for e in supported_extensions)

	if '.' not in base:
		return f"Error: Filename '{base}' has no extension. Please add a supported extension: {supported}."

	ext = base.rsplit('.', 1)[1].lower()
	if ext not in supported_extensions:
		return f"Error: Unsupported file extension '.{ext}' in '{base}'. Supported extensions: {supported}."

	return (
		f"Error: Invalid filename '{base}'. "
		f'Filenames must contain only letters, numbers, underscores, hyphens, dots, parentheses, and spaces. '
		f'Supported extensions: {supported}.'
	)


class FileSystemError(Exception):
	"""File system failure whose message is meant for the model"""

	pass


class BaseFile(BaseModel, ABC):
	"""A text file held in memory and mirrored to the data directory"""

	name: str
	content: str = ''

	@property
	@abstractmethod
	def extension(self) -> str:
		pass

	@property
	def full_name(self) -> str:
		return f'{self.name}.{self.extension}'

	@property
	def size(self) -> int:
		return len(self.content)

	@property
	def line_count(self) -> int:
		return len(self.content.splitlines())

	def sync_to_disk_sync(self, path: Path) -> None:
		(path / self.full_name).write_text(self.content, encoding='utf-8')

	async def sync_to_disk(self, path: Path) -> None:
		await asyncio.to_thread(self.sync_to_disk_sync, path)

	async def write(self, content: str, path: Path) -> None:
		self.content = content
		await self.sync_to_disk(path)

	async def append(self, content: str, path: Path) -> None:
		self.content = self.content + content
		await self.sync_to_disk(path)

	def remove_from_disk(self, path: Path) -> None:
		(path / self.full_name).unlink(missing_ok=True)


class MarkdownFile(BaseFile):
	@property
	def extension(self) -> str:
		return 'md'


class TxtFile(BaseFile):
	@property
	def extension(self) -> str:
		return 'txt'


class JsonFile(BaseFile):
	@property
	def extension(self) -> str:
		return 'json'


class JsonlFile(BaseFile):
	@property
	def extension(self) -> str:
		return 'jsonl'


class CsvFile(BaseFile):
	@property
	def extension(self) -> str:
		return 'csv'


class FileSystemState(BaseModel):
	"""Serialisable state of the agent file system"""

	files: dict[str, dict[str, Any]] = {}
	base_dir: str


class AgentFileSystem:
	"""Sandboxed text file store the agent can write notes, results and extracted data to.

	Files live in memory keyed by full filename and are mirrored to `<base_dir>/webact_agent_data`.
	Every operation returns a message for the model; user errors are reported in the message,
	never raised.
	"""

	def __init__(self, base_dir: str | Path | None = None, clean: bool = True):
		self.base_dir = Path(base_dir) if base_dir is not None else CONFIG.WEBACT_AGENT_DATA_DIR
		self.base_dir.mkdir(parents=True, exist_ok=True)

		self.data_dir = self.base_dir / DEFAULT_FILE_SYSTEM_PATH
		if clean and self.data_dir.exists():
			shutil.rmtree(self.data_dir)
		self.data_dir.mkdir(exist_ok=True)

		self._file_types: dict[str, type[BaseFile]] = {
			'md': MarkdownFile,
			'txt': TxtFile,
			'json': JsonFile,
			'jsonl': JsonlFile,
			'csv': CsvFile,
		}
		self.files: dict[str, BaseFile] = {}

	def get_allowed_extensions(self) -> list[str]:
		return list(self._file_types.keys())

	def get_dir(self) -> Path:
		return self.data_dir

	def _is_valid_filename(self, file_name: str) -> bool:
		extensions = '|'.join(self._file_types.keys())
		pattern = rf'^[a-zA-Z0-9_\-\.\(\) \u4e00-\u9fff]+\.({extensions})$'
		if os.path.basename(file_name) != file_name or not re.match(pattern, file_name):
			return False
		return len(file_name.rsplit('.', 1)[0].strip()) > 0

	def _parse_filename(self, filename: str) -> tuple[str, str]:
		"""Split into (name, extension). Check _is_valid_filename first."""
		name, extension = filename.rsplit('.', 1)
		return name, extension.lower()

	def _create_file(self, full_filename: str, content: str = '') -> BaseFile:
		name, extension = self._parse_filename(full_filename)
		file_class = self._file_types.get(extension)
		if file_class is None:
			raise FileSystemError(f"Error: Invalid file extension '{extension}' for file '{full_filename}'.")
		return file_class(name=name, content=content)

	def get_file(self, full_filename: str) -> BaseFile | None:
		if not self._is_valid_filename(full_filename):
			return None
		return self.files.get(full_filename)

	def list_files(self) -> list[str]:
		return [file_obj.full_name for file_obj in self.files.values()]

	def list_files_info(self) -> str:
		if not self.files:
			return 'No files in the file system.'
		lines = [f'- {f.full_name}: {f.size} chars, {f.line_count} lines' for f in self.files.values()]
		return f'Files ({len(lines)}):\n' + '\n'.join(lines)

	async def write_string(self, filename: str, content: str = '') -> str:
		if not self._is_valid_filename(filename):
			return _build_filename_error_message(filename, self.get_allowed_extensions())
		try:
			file_obj = self.files.get(filename)
			if file_obj is None:
				file_obj = self._create_file(filename)
				self.files[filename] = file_obj
			await file_obj.write(content, self.data_dir)
			return f'Data written to file {filename} successfully.'
		except FileSystemError as e:
			return str(e)
		except OSError as e:
			return f"Error: Could not write to file '{filename}'. {e}"

	async def read_string(self, filename: str, external: bool = False) -> str:
		if external:
			return await self._read_external(filename)
		if not self._is_valid_filename(filename):
			return _build_filename_error_message(filename, self.get_allowed_extensions())
		file_obj = self.files.get(filename)
		if file_obj is None:
			return f"File '{filename}' not found."
		return f'Read from file {filename}.\n<content>\n{file_obj.content}\n</content>'

	async def _read_external(self, path: str) -> str:
		extension = path.rsplit('.', 1)[1].lower() if '.' in os.path.basename(path) else ''
		if extension not in self._file_types:
			return f'Error: Cannot read file {path} as {extension or "(no extension)"} extension is not supported.'
		try:
			content = await asyncio.to_thread(Path(path).read_text, encoding='utf-8')
		except FileNotFoundError:
			return f"Error: File '{path}' not found."
		except PermissionError:
			return f"Error: Permission denied to read file '{path}'."
		except OSError as e:
			return f"Error: Could not read file '{path}'. {e}"
		return f'Read from file {path}.\n<content>\n{content}\n</content>'

	async def append(self, filename: str, content: str) -> str:
		if not self._is_valid_filename(filename):
			return _build_filename_error_message(filename, self.get_allowed_extensions())
		file_obj = self.files.get(filename)
		if file_obj is None:
			return f"File '{filename}' not found."
		try:
			await file_obj.append(content, self.data_dir)
			return f'Data appended to file {filename} successfully.'
		except OSError as e:
			return f"Error: Could not append to file '{filename}'. {e}"

	async def replace_content(self, filename: str, old_str: str, new_str: str) -> str:
		if not self._is_valid_filename(filename):
			return _build_filename_error_message(filename, self.get_allowed_extensions())
		if not old_str:
			return 'Error: Cannot replace empty string. Please provide a non-empty string to replace.'
		file_obj = self.files.get(filename)
		if file_obj is None:
			return f"File '{filename}' not found."
		try:
			await file_obj.write(file_obj.content.replace(old_str, new_str), self.data_dir)
			return f'Successfully replaced all occurrences of "{old_str}" with "{new_str}" in file {filename}'
		except OSError as e:
			return f"Error: Could not replace string in file '{filename}'. {e}"

	async def file_exists(self, filename: str) -> str:
		if self.get_file(filename) is not None:
			return f"File '{filename}' exists."
		return f"File '{filename}' does not exist."

	async def get_file_info(self, filename: str) -> str:
		file_obj = self.get_file(filename)
		if file_obj is None:
			return f"File '{filename}' not found."
		return f'File: {file_obj.full_name}\nExtension: {file_obj.extension}\nSize: {file_obj.size} chars\nLines: {file_obj.line_count}'

	async def delete_file(self, filename: str) -> str:
		file_obj = self.get_file(filename)
		if file_obj is None:
			return f"File '{filename}' not found."
		del self.files[filename]
		await asyncio.to_thread(file_obj.remove_from_disk, self.data_dir)
		return f"File '{filename}' deleted successfully."

	def _check_transfer(self, source: str, dest: str) -> str | None:
		if not self._is_valid_filename(source):
			return 'Error: Invalid source filename format. Must be alphanumeric with supported extension.'
		if not self._is_valid_filename(dest):
			return 'Error: Invalid destination filename format. Must be alphanumeric with supported extension.'
		if source == dest:
			return 'Error: Source and destination file names must be different.'
		if source not in self.files:
			return f"Source file '{source}' not found."
		return None

	async def copy_file(self, source: str, dest: str) -> str:
		error = self._check_transfer(source, dest)
		if error:
			return error
		try:
			new_file = self._create_file(dest, self.files[source].content)
			await new_file.sync_to_disk(self.data_dir)
		except (FileSystemError, OSError) as e:
			return f"Error: Could not copy '{source}' to '{dest}'. {e}"
		self.files[dest] = new_file
		return f"File '{source}' copied to '{dest}' successfully."

	async def move_file(self, source: str, dest: str) -> str:
		error = self._check_transfer(source, dest)
		if error:
			return error
		source_file = self.files[source]
		try:
			new_file = self._create_file(dest, source_file.content)
			await new_file.sync_to_disk(self.data_dir)
			await asyncio.to_thread(source_file.remove_from_disk, self.data_dir)
		except (FileSystemError, OSError) as e:
			return f"Error: Could not move '{source}' to '{dest}'. {e}"
		del self.files[source]
		self.files[dest] = new_file
		return f"File '{source}' moved to '{dest}' successfully."

	def describe(self, display_chars: int = 400) -> str:
		"""Short listing of every file with head/tail previews for large ones."""
		description = ''
		for file_obj in self.files.values():
			content = file_obj.content
			if not content:
				description += f'<file>\n{file_obj.full_name} - [empty file]\n</file>\n'
				continue

			lines = content.splitlines()
			if len(content) < int(1.5 * display_chars) or len(lines) < 3:
				description += f'<file>\n{file_obj.full_name} - {len(lines)} lines\n<content>\n{content}\n</content>\n</file>\n'
				continue

			half = display_chars // 2
			head: list[str] = []
			used = 0
			for line in lines:
				if used + len(line) + 1 > half:
					break
				head.append(line)
				used += len(line) + 1
			tail: list[str] = []
			used = 0
			for line in reversed(lines[len(head) :]):
				if used + len(line) + 1 > half:
					break
				tail.insert(0, line)
				used += len(line) + 1

			middle = len(lines) - len(head) - len(tail)
			description += f'<file>\n{file_obj.full_name} - {len(lines)} lines\n<content>\n'
			description += '\n'.join(head) + f'\n... {middle} more lines ...\n' + '\n'.join(tail)
			description += '\n</content>\n</file>\n'
		return description.strip('\n')

	def get_state(self) -> FileSystemState:
		files_data = {name: {'type': f.__class__.__name__, 'data': f.model_dump()} for name, f in self.files.items()}
		return FileSystemState(files=files_data, base_dir=str(self.base_dir))

	@classmethod
	def from_state(cls, state: FileSystemState) -> 'AgentFileSystem':
		"""Restore at the same location, rewriting every file to disk."""
		fs = cls(base_dir=Path(state.base_dir), clean=False)
		for full_filename, file_data in state.files.items():
			file_obj = fs._create_file(full_filename, file_data['data'].get('content', ''))
			fs.files[full_filename] = file_obj
			file_obj.sync_to_disk_sync(fs.data_dir)
		return fs

	def nuke(self) -> None:
		shutil.rmtree(self.data_dir, ignore_errors=True)
