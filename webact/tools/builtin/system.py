from webact.tools.executor import AbstractToolExecutor
from webact.tools.views import ToolArg, ToolSpec


class SystemToolExecutor(AbstractToolExecutor):
	"""`system` domain. Its target is the tool manager itself."""

	domain = 'system'

	def default_specs(self) -> list[ToolSpec]:
		return [
			ToolSpec(
				domain=self.domain,
				method='help',
				arguments=[ToolArg(name='domain'), ToolArg(name='method')],
				description='Get help information for a specific tool method in a domain',
			)
		]
