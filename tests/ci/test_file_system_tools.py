"""
Tests for the agent file system and the `fs` tool domain.
"""

import pytest

from webact.filesystem.file_system import DEFAULT_FILE_SYSTEM_PATH, AgentFileSystem
from webact.tools.service import AgentToolManager
from webact.tools.views import ToolCall


@pytest.fixture
def file_system(tmp_path):
	fs = AgentFileSystem(tmp_path)
	yield fs
	fs.nuke()


@pytest.fixture
def tools(file_system):
	return AgentToolManager(file_system=file_system)


async def fs_call(tools: AgentToolManager, method: str, **arguments) -> str:
	evaluate = await tools.execute(ToolCall(domain='fs', method=method, arguments=arguments))
	assert evaluate.success, evaluate.render()
	return evaluate.value


class TestAgentFileSystem:
	async def test_write_and_read(self, file_system, tmp_path):
		assert await file_system.write_string('notes.md', '# Findings\n- one') == 'Data written to file notes.md successfully.'

		result = await file_system.read_string('notes.md')

		assert result == 'Read from file notes.md.\n<content>\n# Findings\n- one\n</content>'
		assert (tmp_path / DEFAULT_FILE_SYSTEM_PATH / 'notes.md').read_text() == '# Findings\n- one'

	async def test_invalid_filenames(self, file_system):
		assert 'has no extension' in await file_system.write_string('notes', 'x')
		assert "Unsupported file extension '.exe'" in await file_system.write_string('run.exe', 'x')
		assert 'Invalid filename' in await file_system.write_string('bad|name.txt', 'x')
		assert await file_system.write_string('../escape.txt', 'x') != 'Data written to file ../escape.txt successfully.'
		assert file_system.list_files() == []

	async def test_unicode_filename(self, file_system):
		assert 'successfully' in await file_system.write_string('笔记.txt', 'hello')

	async def test_append_and_replace(self, file_system):
		await file_system.write_string('todo.txt', 'buy milk')
		await file_system.append('todo.txt', '\nbuy eggs')

		result = await file_system.replace_content('todo.txt', 'buy', 'get')

		assert result == 'Successfully replaced all occurrences of "buy" with "get" in file todo.txt'
		assert file_system.get_file('todo.txt').content == 'get milk\nget eggs'
		assert 'Cannot replace empty string' in await file_system.replace_content('todo.txt', '', 'x')

	async def test_missing_file(self, file_system):
		assert await file_system.read_string('nope.txt') == "File 'nope.txt' not found."
		assert await file_system.append('nope.txt', 'x') == "File 'nope.txt' not found."
		assert await file_system.file_exists('nope.txt') == "File 'nope.txt' does not exist."

	async def test_copy_and_move(self, file_system):
		await file_system.write_string('data.json', '{"a": 1}')

		assert 'copied' in await file_system.copy_file('data.json', 'backup.txt')
		assert 'must be different' in await file_system.move_file('data.json', 'data.json')
		assert 'moved' in await file_system.move_file('data.json', 'final.json')
		assert "Source file 'data.json' not found." == await file_system.copy_file('data.json', 'other.json')
		assert sorted(file_system.list_files()) == ['backup.txt', 'final.json']

	async def test_external_read(self, file_system, tmp_path):
		outside = tmp_path / 'report.csv'
		outside.write_text('a,b\n1,2', encoding='utf-8')

		result = await file_system.read_string(str(outside), external=True)

		assert '<content>\na,b\n1,2\n</content>' in result
		assert 'not supported' in await file_system.read_string(str(tmp_path / 'image.png'), external=True)

	async def test_state_round_trip(self, file_system):
		await file_system.write_string('results.md', 'done')

		restored = AgentFileSystem.from_state(file_system.get_state())

		assert restored.get_file('results.md').content == 'done'

	async def test_describe_truncates_large_files(self, file_system):
		await file_system.write_string('long.txt', '\n'.join(f'line {i}' for i in range(500)))

		description = file_system.describe(display_chars=100)

		assert 'long.txt - 500 lines' in description
		assert 'more lines' in description

	def test_default_base_dir_comes_from_environment(self, monkeypatch, tmp_path):
		monkeypatch.setenv('WEBACT_AGENT_DATA_DIR', str(tmp_path / 'agent-data'))

		file_system = AgentFileSystem()

		assert file_system.base_dir == (tmp_path / 'agent-data').resolve()
		assert file_system.data_dir == file_system.base_dir / DEFAULT_FILE_SYSTEM_PATH
		assert file_system.data_dir.is_dir()


class TestFileSystemTools:
	async def test_tool_round_trip(self, tools):
		await fs_call(tools, 'writeString', filename='report.md', content='hello')
		await fs_call(tools, 'append', filename='report.md', content=' world')

		assert (await fs_call(tools, 'readString', filename='report.md')).endswith('hello world\n</content>')
		assert await fs_call(tools, 'fileExists', filename='report.md') == "File 'report.md' exists."

	async def test_file_info_and_listing(self, tools):
		await fs_call(tools, 'writeString', filename='a.txt', content='one\ntwo')

		info = await fs_call(tools, 'getFileInfo', filename='a.txt')
		listing = await fs_call(tools, 'listFiles')

		assert 'Lines: 2' in info
		assert 'Extension: txt' in info
		assert listing == 'Files (1):\n- a.txt: 7 chars, 2 lines'

	async def test_copy_delete_via_tools(self, tools, file_system):
		await fs_call(tools, 'writeString', filename='a.txt', content='x')
		await fs_call(tools, 'copyFile', source='a.txt', dest='b.txt')

		assert await fs_call(tools, 'deleteFile', filename='a.txt') == "File 'a.txt' deleted successfully."
		assert file_system.list_files() == ['b.txt']

	async def test_replace_content_argument_names(self, tools, file_system):
		await fs_call(tools, 'writeString', filename='a.txt', content='cat')

		await fs_call(tools, 'replaceContent', filename='a.txt', oldStr='c', newStr='b')

		assert file_system.get_file('a.txt').content == 'bat'

	async def test_fs_domain_missing_without_file_system(self):
		evaluate = await AgentToolManager().execute(ToolCall(domain='fs', method='listFiles'))

		assert not evaluate.success
		assert 'Unsupported domain' in evaluate.exception.message
