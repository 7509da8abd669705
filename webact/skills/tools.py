import json
import logging
from typing import Any

from webact.events.service import EventNotifier, notify
from webact.skills.service import SkillRegistry
from webact.skills.views import SkillContext
from webact.tools.executor import AbstractToolExecutor, param_dict
from webact.tools.views import ToolArg, ToolSpec

logger = logging.getLogger(__name__)


class SkillToolTarget:
	"""Binds a SkillRegistry and a SkillContext to the `skill` tool domain"""

	def __init__(self, context: SkillContext, registry: SkillRegistry, event_notifier: EventNotifier | None = None):
		self.context = context
		self.registry = registry
		self.event_notifier = event_notifier

	async def list(self, max_description_chars: int = 512) -> str:
		summaries = self.registry.list_skill_summaries(max_description_chars)
		notify(self.event_notifier, 'skill.onSkillsListed', count=len(summaries))
		return json.dumps([summary.model_dump() for summary in summaries], ensure_ascii=False)

	async def activate(self, id: str) -> str:
		activation = self.registry.activate_skill(id)
		notify(self.event_notifier, 'skill.onSkillActivated', skillId=id)
		return activation.model_dump_json()

	async def run(self, id: str, params: Any = None) -> Any:
		parsed = self._parse_params(params)
		notify(self.event_notifier, 'skill.onWillRunSkill', skillId=id, params=parsed)
		try:
			result = await self.registry.execute(id, self.context, parsed)
		except Exception as e:
			notify(self.event_notifier, 'skill.onSkillError', skillId=id, error=str(e))
			raise
		notify(self.event_notifier, 'skill.onDidRunSkill', skillId=id, success=result.success)
		if not result.success:
			raise RuntimeError(result.message or f"Skill '{id}' failed")
		return result.data if result.data is not None else result.message

	@staticmethod
	def _parse_params(params: Any) -> dict[str, Any]:
		if params is None or params == '':
			return {}
		return param_dict(params, 'params')


class SkillToolExecutor(AbstractToolExecutor):
	domain = 'skill'

	def default_specs(self) -> list[ToolSpec]:
		return [
			ToolSpec(
				domain=self.domain,
				method='list',
				arguments=[ToolArg(name='maxDescriptionChars', type='int', required=False, default=512)],
				return_type='str',
				description='List available skills with a short description. Use it to decide which skill to activate.',
			),
			ToolSpec(
				domain=self.domain,
				method='activate',
				arguments=[ToolArg(name='id')],
				return_type='str',
				description='Load the full instructions and tools of a skill.',
			),
			ToolSpec(
				domain=self.domain,
				method='run',
				arguments=[ToolArg(name='id'), ToolArg(name='params', type='any', required=False, default=None)],
				return_type='any',
				description='Run a skill. params is an object or a JSON string.',
			),
		]
