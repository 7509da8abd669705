from webact.shell.service import DEFAULT_TIMEOUT_SECONDS
from webact.tools.executor import AbstractToolExecutor
from webact.tools.views import ToolArg, ToolSpec


class ShellToolExecutor(AbstractToolExecutor):
	domain = 'shell'

	def default_specs(self) -> list[ToolSpec]:
		session = ToolArg(name='sessionId')
		return [
			ToolSpec(
				domain=self.domain,
				method='execute',
				arguments=[
					ToolArg(name='command'),
					ToolArg(name='timeoutSeconds', type='int', required=False, default=DEFAULT_TIMEOUT_SECONDS),
					ToolArg(name='workingDir', required=False, default=None),
				],
				description='Run an allow-listed read-only shell command (ls, cat, grep, ...). Returns exit code and output.',
			),
			ToolSpec(domain=self.domain, method='readOutput', arguments=[session], description='Read the output of an earlier command'),
			ToolSpec(domain=self.domain, method='getStatus', arguments=[session], description='Status of an earlier command'),
			ToolSpec(domain=self.domain, method='listSessions', description='List every command run in this session'),
		]
