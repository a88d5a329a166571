import pytest

from viml.host import Host, TextEditor
from viml.interpreter import Interpreter

# Every test gets an interpreter bound to a small in-memory buffer and a
# shell that records what it was asked to run instead of spawning processes.

BUFFER = "one\ntwo\nthree\nfour\nfive\n"


class RecordingShell:
    def __init__(self, output: str = ""):
        self.output = output
        self.calls: list[tuple[str, str, str | None]] = []

    def run(self, shell: str, command: str, input: str | None = None) -> str:
        self.calls.append((shell, command, input))
        if input is not None and not self.output:
            # behaves like `sort` when filtering, the common case in the tests
            return "\n".join(sorted(input.splitlines())) + "\n"
        return self.output


@pytest.fixture
def editor():
    return TextEditor(BUFFER)


@pytest.fixture
def read_only_editor():
    return TextEditor(BUFFER, writable=False)


@pytest.fixture
def shell():
    return RecordingShell("hello\n")


@pytest.fixture
def host(editor, shell):
    return Host(editor=editor, shell=shell)


@pytest.fixture
def vim(host):
    """Fresh interpreter; options and variables start from their defaults."""
    return Interpreter(host)


@pytest.fixture
def echo(vim):
    """Run `:echo expr` and return what it printed."""
    def run(expression: str) -> str:
        vim.execute(f"echo {expression}")
        assert vim.host.messages.error_count == 0, vim.host.messages.messages
        return vim.host.messages.outputs[-1]
    return run
