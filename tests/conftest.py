"""Shared fixtures for the misekit test suite.

No test spawns a real mise: the client is exercised through a fake runner
and the runner through a patched ``subprocess.run``.
"""

import pytest

from misekit.client import MiseClient
from misekit.errors import MiseCommandError
from misekit.models import MiseResult


class FakeRunner:
    """Records mise invocations and replays canned results"""

    def __init__(self, binary="/usr/local/bin/mise"):
        self.binary = binary
        self.calls = []
        self.exec_calls = []
        self._responses = {}
        self._exec_responses = {}

    def respond(self, args, stdout="", stderr="", exit_code=0):
        self._responses[tuple(args)] = MiseResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    def respond_exec(self, argv, stdout="", stderr="", exit_code=0):
        self._exec_responses[tuple(argv)] = MiseResult(
            stdout=stdout, stderr=stderr, exit_code=exit_code
        )

    def _reply(self, args, result, message):
        if result.exit_code != 0:
            raise MiseCommandError(
                message, args, stdout=result.stdout, stderr=result.stderr, exit_code=result.exit_code
            )
        return result

    def run(self, args, **kwargs):
        self.calls.append(list(args))
        result = self._responses.get(tuple(args), MiseResult(stdout="", stderr=""))
        return self._reply(args, result, f"mise {' '.join(args)}")

    def exec(self, argv, **kwargs):
        self.exec_calls.append(list(argv))
        result = self._exec_responses.get(tuple(argv), MiseResult(stdout="", stderr=""))
        return self._reply(argv, result, " ".join(argv))


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def client(runner):
    return MiseClient(runner=runner)
