from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from webact.agent.views import ActionDescription, ExecutionContext, ExtractParams, ObserveParams


@runtime_checkable
class InferenceEngine(Protocol):
	"""The model-facing collaborator.

	`observe` returns the model's ranked candidates (or a completion) for the current page.
	Implementations that only have raw model text can build the ActionDescription with
	`webact.agent.action_parser.parse_model_response`.
	"""

	async def observe(self, params: ObserveParams, context: ExecutionContext) -> ActionDescription: ...

	async def extract(self, params: ExtractParams) -> dict[str, Any]: ...

	async def assess_extraction(self, params: ExtractParams, extracted: dict[str, Any]) -> dict[str, Any]: ...

	async def summarize(self, instruction: str, text_content: str) -> str: ...
