import asyncio
import itertools
import logging
import os
import re
import shlex
import signal
import sys
import time
from pathlib import Path

from webact.config import CONFIG
from webact.shell.views import ShellResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
MAX_TIMEOUT_SECONDS = 300
MAX_OUTPUT_CHARS = 100_000

ALLOWED_COMMANDS = frozenset(
	{
		# Navigation and listing
		'ls',
		'pwd',
		'tree',
		# File viewing
		'cat',
		'less',
		'head',
		'tail',
		# Text processing, sed without in-place editing
		'grep',
		'sed',
		'wc',
		'sort',
		'uniq',
		# System info
		'uname',
		'hostname',
		'uptime',
		'whoami',
		'id',
		'free',
		'df',
		'du',
		'ps',
		'pgrep',
		# Network info, only these ip subcommands
		'ip addr',
		'ip route',
		'ss',
		# Environment
		'printenv',
		'which',
		'echo',
	}
)

BLOCKED_PATTERNS = [
	re.compile(p)
	for p in (
		r'rm\s+-\S*r\S*\s+/\s*$',
		r'rm\s+-\S*r\S*\s+/\*',
		r'mkfs\.',
		r'dd\s+.*of=/dev/',
		r'shutdown',
		r'reboot',
		r'init\s+[06]',
		r':\(\)\{',
	)
]

# Command chaining, substitution and redirection would bypass the allow-list
_FORBIDDEN_SYNTAX = re.compile(r'(;|&&|\|\||`|\$\(|>|<|&\s*$)')

# sed `e`, `w` and `W` commands or s/// flags run programs and write files
_SED_WRITE_OR_EXEC = re.compile(r'(?<![A-Za-z-])[ewW](?![A-Za-z])')


class AgentShell:
	"""Allow-listed shell for read-only inspection commands.

	Each call to `execute` gets a session id (`shell-N`) whose result can be read back later.
	"""

	def __init__(self, base_dir: str | Path | None = None, default_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS):
		self.base_dir = Path(base_dir).resolve() if base_dir is not None else CONFIG.WEBACT_AGENT_DATA_DIR / 'shell'
		self.base_dir.mkdir(parents=True, exist_ok=True)
		self.default_timeout_seconds = default_timeout_seconds
		self._session_counter = itertools.count(1)
		self.results: dict[str, ShellResult] = {}

	async def execute(self, command: str, timeout_seconds: int | None = None, working_dir: str | None = None) -> str:
		if not command or not command.strip():
			return 'Error: Command must not be blank.'

		violation = self.validate_command(command)
		if violation is not None:
			logger.info(f'🚫 Blocked shell command {command!r}: {violation}')
			return f'Error: Command blocked for security reasons - {violation}'

		timeout = min(max(timeout_seconds or self.default_timeout_seconds, 1), MAX_TIMEOUT_SECONDS)
		directory = self.base_dir
		if working_dir:
			directory = (self.base_dir / working_dir).resolve()
			if not directory.is_relative_to(self.base_dir):
				return 'Error: Working directory must be within the base directory.'
		directory.mkdir(parents=True, exist_ok=True)

		session_id = f'shell-{next(self._session_counter)}'
		try:
			result = await self._run(session_id, command, timeout, directory)
		except OSError as e:
			logger.warning(f'Failed to execute shell command {command!r}: {e}')
			return f"Error: Failed to execute command '{command}'. {e}".strip()

		self.results[session_id] = result
		logger.debug(f'🐚 {session_id} {command!r} -> {result.status} in {result.duration_ms}ms')
		return result.format()

	def read_output(self, session_id: str) -> str:
		result = self.results.get(session_id)
		if result is None:
			return f"Error: No result found for session '{session_id}'."
		return result.format()

	def get_status(self, session_id: str) -> str:
		result = self.results.get(session_id)
		if result is None:
			return f"Error: No session found with ID '{session_id}'."
		return (
			f"Session '{session_id}': status={result.status}, exitCode={result.exit_code}, "
			f"timedOut={str(result.timed_out).lower()}, duration={result.duration_ms}ms, command='{result.command}'"
		)

	def list_sessions(self) -> str:
		if not self.results:
			return 'No shell sessions recorded.'
		lines = [f'Shell sessions ({len(self.results)} total):']
		for session_id, result in self.results.items():
			lines.append(f"- {session_id}: status={result.status}, command='{result.command}', duration={result.duration_ms}ms")
		return '\n'.join(lines)

	def validate_command(self, command: str) -> str | None:
		"""Return why the command is rejected, or None when it may run."""
		if _FORBIDDEN_SYNTAX.search(command):
			return 'command chaining, substitution and redirection are not allowed'

		for segment in command.split('|'):
			base_command = self._extract_base_command(segment)
			if not base_command:
				return 'empty or invalid command'
			if base_command not in ALLOWED_COMMANDS:
				return f"command '{base_command}' is not in the whitelist. Allowed commands: {', '.join(sorted(ALLOWED_COMMANDS))}"
			if base_command == 'sed' and re.search(r'sed\s+.*(-i|--in-place)', segment):
				return 'sed in-place editing is not allowed'
			if base_command == 'sed' and _SED_WRITE_OR_EXEC.search(segment.split('sed', 1)[1]):
				return 'sed write and execute commands are not allowed'
			if base_command in ('sort', 'tree') and re.search(r'\s(-o|--output)(\s|=|$)', segment):
				return f'{base_command} output files are not allowed'

		for pattern in BLOCKED_PATTERNS:
			if pattern.search(command):
				return f'matches blocked pattern: {pattern.pattern}'
		return None

	@staticmethod
	def _extract_base_command(command: str) -> str:
		try:
			tokens = shlex.split(command.strip())
		except ValueError:
			return ''
		if not tokens:
			return ''
		if tokens[0] == 'ip' and len(tokens) > 1:
			return f'ip {tokens[1]}'
		return tokens[0]

	async def _run(self, session_id: str, command: str, timeout: int, directory: Path) -> ShellResult:
		start = time.monotonic()
		process = await asyncio.create_subprocess_shell(
			command,
			cwd=str(directory),
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.PIPE,
			start_new_session=sys.platform != 'win32',
		)
		timed_out = False
		try:
			stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
		except TimeoutError:
			timed_out = True
			_kill(process)
			stdout, stderr = await process.communicate()
		except BaseException:
			# Cancelled by a step timeout, the child must not outlive the step
			if process.returncode is None:
				_kill(process)
				await asyncio.shield(process.wait())
			raise

		return ShellResult(
			session_id=session_id,
			command=command,
			exit_code=-1 if timed_out else (process.returncode if process.returncode is not None else -1),
			stdout=_truncate(stdout.decode('utf-8', errors='replace')),
			stderr=_truncate(stderr.decode('utf-8', errors='replace')),
			duration_ms=int((time.monotonic() - start) * 1000),
			timed_out=timed_out,
		)


def _kill(process: asyncio.subprocess.Process) -> None:
	"""Kill the shell and everything it spawned."""
	if sys.platform == 'win32':
		process.kill()
		return
	try:
		os.killpg(process.pid, signal.SIGKILL)
	except ProcessLookupError:
		pass


def _truncate(output: str) -> str:
	if len(output) > MAX_OUTPUT_CHARS:
		return output[:MAX_OUTPUT_CHARS] + f'\n... (output truncated at {MAX_OUTPUT_CHARS} chars)'
	return output
