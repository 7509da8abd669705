from webact.tools.executor import AbstractToolExecutor
from webact.tools.views import ToolArg, ToolSpec


class BrowserToolExecutor(AbstractToolExecutor):
	domain = 'browser'

	def default_specs(self) -> list[ToolSpec]:
		return [
			ToolSpec(
				domain=self.domain,
				method='switchTab',
				arguments=[ToolArg(name='tabId')],
				return_type='None',
				description='Switch to a specific browser tab by its ID',
			)
		]
