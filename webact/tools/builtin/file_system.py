from webact.tools.executor import AbstractToolExecutor
from webact.tools.views import ToolArg, ToolSpec

_FILENAME = ToolArg(name='filename')
_SOURCE = ToolArg(name='source')
_DEST = ToolArg(name='dest')


class FileSystemToolExecutor(AbstractToolExecutor):
	"""`fs` domain, bound to an AgentFileSystem"""

	domain = 'fs'

	def default_specs(self) -> list[ToolSpec]:
		d = self.domain
		return [
			ToolSpec(
				domain=d,
				method='writeString',
				arguments=[_FILENAME, ToolArg(name='content', required=False, default='')],
				description='Write content to a file in the agent file system. Creates a new file or overwrites existing content. Supported extensions: md, txt, json, jsonl, csv.',
			),
			ToolSpec(
				domain=d,
				method='readString',
				arguments=[_FILENAME, ToolArg(name='external', type='bool', required=False, default=False)],
				description="Read content from a file. If 'external' is true, reads the given path on disk instead of the agent file system.",
			),
			ToolSpec(
				domain=d,
				method='append',
				arguments=[_FILENAME, ToolArg(name='content')],
				description='Append content to an existing file in the agent file system',
			),
			ToolSpec(
				domain=d,
				method='replaceContent',
				arguments=[_FILENAME, ToolArg(name='oldStr'), ToolArg(name='newStr')],
				description='Replace all occurrences of a string in a file with a new string',
			),
			ToolSpec(domain=d, method='fileExists', arguments=[_FILENAME], description='Check if a file exists in the agent file system'),
			ToolSpec(
				domain=d, method='getFileInfo', arguments=[_FILENAME], description='Get information about a file (size, lines, extension)'
			),
			ToolSpec(domain=d, method='deleteFile', arguments=[_FILENAME], description='Delete a file from the agent file system'),
			ToolSpec(
				domain=d,
				method='copyFile',
				arguments=[_SOURCE, _DEST],
				description='Copy a file within the agent file system. Can change file extension.',
			),
			ToolSpec(
				domain=d,
				method='moveFile',
				arguments=[_SOURCE, _DEST],
				description='Move or rename a file within the agent file system. Can change file extension.',
			),
			ToolSpec(
				domain=d,
				method='listFiles',
				attribute='list_files_info',
				description="List all files in the agent's file system with size and line count information",
			),
		]
