"""
Tests for the observe -> act control loop of BasicBrowserAgent.

Covers candidate fallback, completion, run() step limits, timeouts, lifecycle
events and the overlay cleanup around inference.

Usage:
	uv run pytest tests/ci/test_agent_loop.py -v -s
"""

import asyncio

import pytest

from tests.ci.conftest import (
	MockDriver,
	RaisingNotifier,
	ScriptedInference,
	candidates,
	complete_description,
	element,
	fast_config,
)
from webact.agent.views import ActionOptions, AgentState, ObserveElement, ObserveResult
from webact.exceptions import AgentStateError


class TestAct:
	async def test_stops_at_first_successful_candidate(self, make_agent, driver):
		agent = make_agent(
			[
				candidates(
					'search for python',
					element('click', selector='missing-a'),
					element('click', selector='#ok'),
					element('fill', selector='#q', text='python'),
				)
			]
		)

		result = await agent.act('search for python')

		assert result.success
		assert not result.is_complete
		# The third candidate is never executed
		assert driver.method_names() == ['click', 'click']
		assert len(agent.state_history) == 1
		state = agent.state_history.last()
		assert state.step == 1
		assert state.method == 'click'
		assert state.exception is None
		assert state.sealed
		assert 'actSuccess' in [t.event for t in agent.process_trace]

	async def test_all_candidates_failing_returns_failed_result(self, make_agent, driver):
		agent = make_agent(
			[candidates('click it', element('click', selector='missing-a'), element('click', selector='missing-b'))]
		)

		result = await agent.act('click it')

		assert not result.success
		assert 'All 2 candidates failed' in result.message
		assert 'missing-b' in result.message
		assert len(agent.state_history) == 0
		assert 'actAllFailed' in [t.event for t in agent.process_trace]

	async def test_only_max_results_to_try_candidates_are_attempted(self, make_agent, driver):
		agent = make_agent(
			[
				candidates(
					'click it',
					element('click', selector='missing-1'),
					element('click', selector='missing-2'),
					element('click', selector='#never'),
				)
			],
			config=fast_config(max_results_to_try=2),
		)

		result = await agent.act('click it')

		assert not result.success
		assert 'All 2 candidates failed' in result.message
		assert len(driver.method_names()) == 2

	async def test_candidate_without_method_is_skipped(self, make_agent, driver):
		agent = make_agent([candidates('press enter', element(''), element('press', selector='#q', key='Enter'))])

		result = await agent.act('press enter')

		assert result.success
		assert driver.calls[-1] == ('press', {'selector': '#q', 'key': 'Enter'})

	async def test_only_candidates_without_method(self, make_agent):
		agent = make_agent([candidates('do something', element(''))])

		result = await agent.act('do something')

		assert not result.success
		assert 'LLM returned no method for candidate 1' in result.message

	async def test_no_candidates(self, make_agent):
		agent = make_agent([candidates('do something')])

		result = await agent.act('do something')

		assert not result.success
		assert 'observeActNoAction' in [t.event for t in agent.process_trace]

	async def test_immediate_completion(self, make_agent, driver):
		agent = make_agent([complete_description('read the heading', 'The heading is Example Domain')])

		result = await agent.act('read the heading')

		assert result.success
		assert result.is_complete
		assert result.message == 'The heading is Example Domain'
		assert driver.method_names() == []
		assert agent.state_history.is_done()
		assert agent.state_history.final_summary() == 'The heading is Example Domain'

	async def test_unknown_domain_is_a_failed_candidate(self, make_agent):
		agent = make_agent([candidates('open', element('open', domain='nope', url='x'))])

		result = await agent.act('open')

		assert not result.success
		assert 'Unsupported domain' in result.message

	async def test_next_act_after_success_gets_a_new_step(self, make_agent):
		agent = make_agent(
			[
				candidates('fill', element('fill', selector='#q', text='a')),
				candidates('press', element('press', selector='#q', key='Enter')),
			]
		)

		await agent.act('fill')
		await agent.act('press')

		assert agent.state_history.steps() == [1, 2]
		assert agent.state_history[1].prev_step == 1
		assert agent.state_history.previous_of(agent.state_history[1]) is agent.state_history[0]

	async def test_failed_action_keeps_the_step_open(self, make_agent):
		agent = make_agent(
			[
				candidates('click', element('click', selector='missing')),
				candidates('click', element('click', selector='#ok')),
			]
		)

		first = await agent.act('click')
		second = await agent.act('click')

		assert not first.success
		assert second.success
		assert agent.state_history.steps() == [1]

	async def test_inference_error_returns_failed_result(self, make_agent, driver):
		agent = make_agent([ValueError('model returned garbage')])

		result = await agent.act('click')

		assert not result.success
		assert 'model returned garbage' in result.message
		assert 'actError' in [t.event for t in agent.process_trace]
		# Overlay is removed even though inference failed
		assert driver.highlights_added == 1
		assert driver.highlights_removed == 1

	async def test_transient_inference_errors_are_retried(self, make_agent):
		agent = make_agent(
			[ConnectionError('connection reset'), candidates('click', element('click', selector='#ok'))],
			config=fast_config(max_inference_retries=2),
		)

		result = await agent.act('click')

		assert result.success
		assert 'inferenceRetry' in [t.event for t in agent.process_trace]

	async def test_multi_act_with_from_resolve_is_a_state_error(self, make_agent):
		agent = make_agent()

		with pytest.raises(AgentStateError):
			await agent.act(ActionOptions.model_construct(action='x', multi_act=True, from_resolve=True))

	async def test_act_detail_is_opt_in(self, make_agent):
		agent = make_agent([candidates('click', element('click', selector='#ok'))])
		result = await agent.act('click')
		assert result.detail is None

		agent = make_agent([candidates('click', element('click', selector='#ok'))], config=fast_config(keep_act_detail=True))
		result = await agent.act('click')
		assert result.detail is not None
		assert result.detail.tool_call_result.success


class TestTimeouts:
	async def test_act_timeout_leaves_no_history(self, make_agent, driver):
		inference = ScriptedInference([candidates('click', element('click', selector='#ok'))])
		inference.observe_delay = 1.0
		agent = make_agent(inference=inference, config=fast_config(act_timeout_ms=300))

		result = await agent.act('click')

		assert not result.success
		assert 'timed out after 300ms' in result.message
		assert len(agent.state_history) == 0
		assert 'actTimeout' in [t.event for t in agent.process_trace]
		assert driver.highlights_removed == driver.highlights_added

		# The agent is still usable afterwards
		inference.observe_delay = 0.0
		result = await agent.act('click')
		assert result.success
		assert agent.state_history.steps() == [1]

	async def test_hanging_tool_is_cut_by_act_timeout(self, make_agent):
		agent = make_agent(
			[candidates('wait', element('waitForSelector', selector='#slow'))],
			config=fast_config(act_timeout_ms=100),
		)

		result = await agent.act('wait')

		assert not result.success
		assert 'timed out' in result.message
		assert len(agent.state_history) == 0

	async def test_inference_timeout(self, make_agent):
		inference = ScriptedInference([candidates('click', element('click', selector='#ok'))])
		inference.observe_delay = 1.0
		agent = make_agent(inference=inference, config=fast_config(llm_inference_timeout_ms=50))

		result = await agent.act('click')

		assert not result.success
		assert 'LLM inference timed out' in result.message
		assert 'inferenceTimeout' in [t.event for t in agent.process_trace]

	async def test_snapshot_timeout_is_not_an_inference_timeout(self, make_agent):
		class StallingDriver(MockDriver):
			def __init__(self):
				super().__init__()
				self.snapshots = 0

			async def get_browser_use_state(self):
				self.snapshots += 1
				if self.snapshots > 1:
					await asyncio.sleep(3600)
				return await super().get_browser_use_state()

		inference = ScriptedInference([candidates('click', element('click', selector='#ok'))])
		agent = make_agent(inference=inference, driver=StallingDriver(), config=fast_config(snapshot_timeout_ms=50))

		result = await agent.act('click')

		events = [t.event for t in agent.process_trace]
		assert not result.success
		assert 'Browser state snapshot timed out after 50ms' in result.message
		assert 'LLM inference' not in result.message
		assert 'actError' in events
		assert 'inferenceTimeout' not in events
		assert inference.observe_calls == []


class TestRun:
	async def test_run_stops_at_max_steps(self, make_agent):
		responses = [candidates(f'step {i}', element('click', selector=f'#b{i}')) for i in range(5)]
		agent = make_agent(responses, config=fast_config(max_steps=3))

		history = await agent.run('click everything')

		assert len(history) == 3
		assert history.steps() == [1, 2, 3]
		assert not history.is_done()

	async def test_run_until_complete(self, make_agent, notifier):
		agent = make_agent(
			[
				candidates('search', element('fill', selector='#q', text='python')),
				candidates('search', element('press', selector='#q', key='Enter')),
				complete_description('search', 'Search submitted'),
			]
		)

		history = await agent.run('search for python')

		assert history.steps() == [1, 2, 3]
		assert history.is_done()
		assert history.final_summary() == 'Search submitted'
		assert notifier.names('agent.onWillRun') == ['agent.onWillRun']
		assert notifier.names('agent.onDidRun') == ['agent.onDidRun']

	async def test_failed_steps_do_not_end_the_run(self, make_agent):
		agent = make_agent(
			[
				candidates('click', element('click', selector='missing')),
				candidates('click', element('click', selector='#ok')),
				complete_description('click'),
			]
		)

		history = await agent.run('click the button')

		# Every run step gets its own context, so the failed step 1 leaves a gap
		assert history.steps() == [2, 3]
		assert history[0].prev_step == 1
		assert history.is_done()


class TestObserve:
	async def test_observe_then_act_on_observation(self, make_agent, driver):
		agent = make_agent([candidates('find the search box', element('fill', selector='#q', text='hello'))])

		results = await agent.observe('find the search box')

		assert len(results) == 1
		assert results[0].method == 'fill'
		assert driver.method_names() == []

		act_result = await agent.act_on_observation(results[0])

		assert act_result.success
		assert driver.method_names() == ['fill']
		assert agent.state_history.steps() == [1]

	async def test_observe_returns_empty_list_when_page_state_fails(self, make_agent):
		class BrokenDriver(MockDriver):
			async def get_browser_use_state(self):
				raise ConnectionError('browser went away')

		agent = make_agent(driver=BrokenDriver())

		assert await agent.observe('anything') == []

	async def test_act_on_observation_before_any_step(self, make_agent):
		agent = make_agent()
		observed = ObserveResult(
			agent_state=AgentState(step=1, instruction='x'),
			observe_element=ObserveElement(),
			action_description=candidates('x'),
		)

		with pytest.raises(AgentStateError, match='not initialized'):
			await agent.act_on_observation(observed)

	async def test_act_on_observation_from_another_step(self, make_agent):
		agent = make_agent([candidates('a', element('click', selector='#ok'))])
		await agent.observe('a')
		stale = ObserveResult(
			agent_state=AgentState(step=5, instruction='x'),
			observe_element=element('click', selector='#ok'),
			action_description=candidates('x'),
		)

		with pytest.raises(AgentStateError, match='Step mismatch'):
			await agent.act_on_observation(stale)

	async def test_screenshot_is_retried_once(self, make_agent, driver):
		inference = ScriptedInference([candidates('a', element('click', selector='#ok'))])
		agent = make_agent(inference=inference)
		driver.screenshot_failures = 1

		await agent.act('a')

		assert inference.observe_calls[0].screenshot_b64 == 'iVBORw0KGgo='

	async def test_missing_screenshot_does_not_fail_the_step(self, make_agent, driver):
		inference = ScriptedInference([candidates('a', element('click', selector='#ok'))])
		agent = make_agent(inference=inference)
		driver.screenshot_failures = 5

		result = await agent.act('a')

		assert result.success
		assert inference.observe_calls[0].screenshot_b64 is None

	async def test_no_overlay_when_disabled(self, make_agent, driver):
		agent = make_agent([candidates('a', element('click', selector='#ok'))], config=fast_config(draw_overlay=False))

		await agent.act('a')

		assert driver.highlights_added == 0
		assert driver.highlights_removed == 0


class TestEvents:
	async def test_event_order_for_successful_act(self, make_agent, notifier):
		agent = make_agent([candidates('a', element('click', selector='#ok'))])

		await agent.act('a')

		assert notifier.names() == [
			'agent.onWillAct',
			'agent.onWillObserve',
			'agent.onDidObserve',
			'tool.onWillExecuteTool',
			'tool.onDidExecuteTool',
			'agent.onDidAct',
		]
		_, payload = notifier.events[-1]
		assert payload['success'] is True
		assert payload['agentId'] == agent.id

	async def test_tool_error_event(self, make_agent, notifier):
		agent = make_agent([candidates('a', element('click', selector='missing'))])

		await agent.act('a')

		assert 'tool.onToolError' in notifier.names()
		assert 'tool.onDidExecuteTool' not in notifier.names()

	async def test_raising_listener_does_not_break_the_loop(self, make_agent):
		agent = make_agent([candidates('a', element('click', selector='#ok'))], event_notifier=RaisingNotifier())

		result = await agent.act('a')

		assert result.success


class TestExtractAndSummarize:
	async def test_two_stage_extract(self, make_agent):
		agent = make_agent()

		result = await agent.extract('get the page title', output_schema={'type': 'object'})

		assert result.success
		assert result.data == {'title': 'Example Domain'}
		assert result.is_complete
		# extract does not create steps
		assert len(agent.state_history) == 0

	async def test_extract_failure_in_first_stage(self, make_agent):
		inference = ScriptedInference()
		inference.extract_result = RuntimeError('model unavailable')
		agent = make_agent(inference=inference)

		result = await agent.extract('get the page title')

		assert not result.success
		assert result.data == {}
		assert 'model unavailable' in result.message

	async def test_extract_failure_in_assessment_keeps_data(self, make_agent):
		inference = ScriptedInference()
		inference.assessment = RuntimeError('assessment broke')
		agent = make_agent(inference=inference)

		result = await agent.extract('get the page title')

		assert not result.success
		assert result.data == {'title': 'Example Domain'}
		assert not result.is_complete

	async def test_summarize_empty_page(self, make_agent, driver):
		inference = ScriptedInference()
		agent = make_agent(inference=inference)
		driver.text = '   '

		summary = await agent.summarize()

		assert summary == 'summary of 17 chars'
		assert inference.summaries[0][1] == '(no text content)'

	async def test_summarize_with_selector(self, make_agent, driver):
		agent = make_agent()

		await agent.summarize('Summarize the article', selector='article')

		assert driver.calls[-1] == ('text_content', {'selector': 'article'})


class TestHousekeeping:
	async def test_clear_history(self, make_agent):
		agent = make_agent([candidates('a', element('click', selector='#ok'))])
		await agent.act('a')

		agent.clear_history()

		assert len(agent.state_history) == 0

	async def test_close_with_plain_notifier(self, make_agent):
		agent = make_agent()
		await agent.close()
