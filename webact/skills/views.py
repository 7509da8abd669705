from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SkillMetadata(BaseModel):
	"""Identity and dependency information of a skill"""

	model_config = ConfigDict(frozen=True)

	id: str
	name: str
	version: str = '1.0.0'
	description: str = ''
	author: str = ''
	dependencies: list[str] = Field(default_factory=list)
	tags: frozenset[str] = frozenset()


class SkillContext(BaseModel):
	"""Per-session context handed to every skill call"""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	session_id: str
	config: dict[str, Any] = Field(default_factory=dict)
	shared_resources: dict[str, Any] = Field(default_factory=dict)

	def get_config(self, key: str, default: Any = None) -> Any:
		return self.config.get(key, default)


class SkillResult(BaseModel):
	success: bool
	data: Any = None
	message: str | None = None
	metadata: dict[str, Any] = Field(default_factory=dict)

	@classmethod
	def ok(cls, data: Any = None, message: str | None = None) -> 'SkillResult':
		return cls(success=True, data=data, message=message)

	@classmethod
	def failure(cls, message: str, metadata: dict[str, Any] | None = None) -> 'SkillResult':
		return cls(success=False, message=message, metadata=metadata or {})


class SkillSummary(BaseModel):
	"""Discovery view of a skill, kept short for the prompt"""

	id: str
	name: str
	description: str
	version: str
	tags: list[str] = Field(default_factory=list)


class SkillActivation(BaseModel):
	"""Full instructions of a skill, returned when the model activates it"""

	id: str
	name: str
	version: str
	instructions: str = ''
	tools: list[str] = Field(default_factory=list)
