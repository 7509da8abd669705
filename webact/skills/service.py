import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from webact.skills.views import SkillActivation, SkillContext, SkillMetadata, SkillResult, SkillSummary
from webact.tools.views import ToolSpec

logger = logging.getLogger(__name__)


class Skill(ABC):
	"""A packaged capability the model can discover, activate and run"""

	metadata: SkillMetadata
	instructions: str = ''

	@property
	def tool_specs(self) -> list[ToolSpec]:
		return []

	@abstractmethod
	async def execute(self, context: SkillContext, params: dict[str, Any]) -> SkillResult:
		pass

	async def validate(self, context: SkillContext) -> bool:
		return True

	async def on_load(self, context: SkillContext) -> None:
		pass

	async def on_unload(self, context: SkillContext) -> None:
		pass

	async def on_before_execute(self, context: SkillContext, params: dict[str, Any]) -> bool:
		"""Return False to cancel the execution."""
		return True

	async def on_after_execute(self, context: SkillContext, params: dict[str, Any], result: SkillResult) -> None:
		pass


class SkillRegistry:
	"""Registered skills of one agent. Injected, not global."""

	def __init__(self):
		self._skills: dict[str, Skill] = {}
		self._lock = asyncio.Lock()

	async def register(self, skill: Skill, context: SkillContext) -> None:
		async with self._lock:
			skill_id = skill.metadata.id
			if skill_id in self._skills:
				raise ValueError(f"Skill '{skill_id}' is already registered. Use unregister() first if you want to replace it.")

			missing = [dep for dep in skill.metadata.dependencies if dep not in self._skills]
			if missing:
				raise RuntimeError(f"Cannot register skill '{skill_id}': missing dependencies: {', '.join(missing)}")

			if not await skill.validate(context):
				raise RuntimeError(f"Skill '{skill_id}' validation failed")

			await skill.on_load(context)
			self._skills[skill_id] = skill
			logger.debug(f'🧩 Registered skill {skill_id} v{skill.metadata.version}')

	async def unregister(self, skill_id: str, context: SkillContext) -> bool:
		async with self._lock:
			skill = self._skills.get(skill_id)
			if skill is None:
				return False
			dependents = [s.metadata.id for s in self._skills.values() if skill_id in s.metadata.dependencies]
			if dependents:
				raise RuntimeError(f"Cannot unregister skill '{skill_id}': it is required by: {', '.join(dependents)}")
			del self._skills[skill_id]
			await skill.on_unload(context)
			return True

	def get(self, skill_id: str) -> Skill | None:
		return self._skills.get(skill_id)

	def __contains__(self, skill_id: str) -> bool:
		return skill_id in self._skills

	def __len__(self) -> int:
		return len(self._skills)

	def get_all(self) -> list[Skill]:
		return list(self._skills.values())

	def find_by_tag(self, tag: str) -> list[Skill]:
		return [s for s in self._skills.values() if tag in s.metadata.tags]

	def list_skill_summaries(self, max_description_chars: int = 512) -> list[SkillSummary]:
		return [
			SkillSummary(
				id=skill.metadata.id,
				name=skill.metadata.name,
				description=skill.metadata.description[:max_description_chars],
				version=skill.metadata.version,
				tags=sorted(skill.metadata.tags),
			)
			for skill in sorted(self._skills.values(), key=lambda s: s.metadata.id)
		]

	def activate_skill(self, skill_id: str) -> SkillActivation:
		skill = self._skills.get(skill_id)
		if skill is None:
			raise ValueError(f"Skill '{skill_id}' is not registered")
		return SkillActivation(
			id=skill.metadata.id,
			name=skill.metadata.name,
			version=skill.metadata.version,
			instructions=skill.instructions,
			tools=[spec.expression for spec in skill.tool_specs],
		)

	async def execute(self, skill_id: str, context: SkillContext, params: dict[str, Any] | None = None) -> SkillResult:
		skill = self._skills.get(skill_id)
		if skill is None:
			raise ValueError(f"Skill '{skill_id}' is not registered")
		params = params or {}

		if not await skill.on_before_execute(context, params):
			return SkillResult.failure('Skill execution was cancelled by on_before_execute hook')

		try:
			result = await skill.execute(context, params)
		except Exception as e:
			logger.warning(f"Error executing skill '{skill_id}': {type(e).__name__}: {e}")
			result = SkillResult.failure(f'Skill execution failed: {e}', metadata={'error_type': type(e).__name__})

		await skill.on_after_execute(context, params, result)
		return result

	async def clear(self, context: SkillContext) -> None:
		async with self._lock:
			for skill in list(self._skills.values()):
				try:
					await skill.on_unload(context)
				except Exception as e:
					logger.warning(f"Error unloading skill '{skill.metadata.id}': {e}")
			self._skills.clear()
