from pydantic import BaseModel


class ShellResult(BaseModel):
	"""Outcome of one shell command"""

	session_id: str
	command: str
	exit_code: int
	stdout: str = ''
	stderr: str = ''
	duration_ms: int = 0
	timed_out: bool = False

	@property
	def success(self) -> bool:
		return self.exit_code == 0 and not self.timed_out

	@property
	def status(self) -> str:
		return 'SUCCESS' if self.success else 'FAILED'

	def format(self) -> str:
		lines = [
			f'Session: {self.session_id}',
			f'Status: {self.status}',
			f'Exit Code: {self.exit_code}',
			f'Duration: {self.duration_ms}ms',
		]
		if self.timed_out:
			lines.append('⚠️ Command timed out')
		if self.stdout.strip():
			lines.extend(['--- stdout ---', self.stdout.rstrip('\n')])
		if self.stderr.strip():
			lines.extend(['--- stderr ---', self.stderr.rstrip('\n')])
		return '\n'.join(lines)
