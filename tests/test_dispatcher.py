import pytest

from viml.commands.command import (
    Command, CommandHandlerFlags, ExecutionResult, ExecutionShape, Flag, RangeFlag,
)
from viml.commands.dispatcher import CommandDispatcher
from viml.commands.registry import find_command
from viml.errors import MissingRange, UnknownCommand
from viml.host import Host
from viml.interpreter import Interpreter
from viml.reader.command_parser import parse_command
from viml.reader.ranges import Range
from viml.types.context import ExecutionContext
from viml.types.values import VimInt, VimString


def history_texts(vim):
    return [entry.text for entry in vim.host.history.get_entries("cmd")]


# -------------------------------
# Command lookup
# -------------------------------
@pytest.mark.parametrize(
    "name,expected",
    [
        ("s", "substitute"),
        ("sub", "substitute"),
        ("d", "delete"),
        ("del", "delete"),
        ("ec", "echo"),
        ("echom", "echomsg"),
        ("t", "t"),
        ("g", "global"),
    ],
)
def test_find_command_by_abbreviation(name, expected):
    full, _ = find_command(name)
    assert full == expected


@pytest.mark.parametrize("name", ["e", "echox", "substitutes"])
def test_find_command_rejects_bad_abbreviations(name):
    assert find_command(name) is None


@pytest.mark.parametrize(
    "text,name,argument,bang",
    [
        ("echo 1", "echo", "1", False),
        ("1,2d a", "delete", "a", False),
        ("g!/x/d", "global", "/x/d", True),
        ("!!", "!", "!", False),
        (">>", ">>", "", False),
        ("Hello world", "Hello", "world", False),
    ],
)
def test_parse_command(text, name, argument, bang):
    command = parse_command(text)
    assert (command.name, command.argument, command.bang) == (name, argument, bang)


def test_parse_empty_line():
    assert parse_command("  :  ") is None


def test_unknown_command():
    with pytest.raises(UnknownCommand) as info:
        parse_command("frobnicate now")
    assert str(info.value) == "E492: Not an editor command: frobnicate now"


# -------------------------------
# Validation and reporting
# -------------------------------
@pytest.mark.parametrize(
    "text,message",
    [
        ('1echo "x"', "E481: No range allowed"),
        ("echo! 1", "E477: No ! allowed"),
        ("unlet", "E471: Argument required"),
        ("frobnicate", "E492: Not an editor command: frobnicate"),
        ("echoerr 'bad' 'news'", "bad news"),
    ],
)
def test_command_errors_are_reported(vim, text, message):
    assert vim.execute(text) is ExecutionResult.ERROR
    messages = vim.host.messages
    assert messages.last_message == message
    assert messages.history[-1] == message
    assert messages.error_count == 1
    assert messages.outputs == []
    assert vim.evaluate("v:errmsg") == VimString(message)


def test_read_only_buffer_refuses_changes(read_only_editor):
    editor = read_only_editor
    vim = Interpreter(Host(editor=editor))
    assert vim.execute("1d") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E21: Cannot make changes, 'modifiable' is off"
    assert editor.lines[0] == "one"
    # reading is fine
    assert vim.execute("1y") is ExecutionResult.SUCCESS


def test_commands_run_for_each_caret_until_one_fails(vim, editor):
    editor.add_caret(2)
    editor.add_caret(4)
    assert vim.execute("s/[fn]/X/") is ExecutionResult.ERROR
    # bottom-most caret first: "five" changes, "three" fails, "one" is never reached
    assert editor.lines == ["one", "two", "three", "four", "Xive"]
    assert vim.host.messages.last_message == "E486: Pattern not found: [fn]"
    assert vim.host.messages.error_count == 1


def test_commands_run_for_every_caret(vim, editor):
    editor.add_caret(3)
    assert vim.execute("s/o/0/") is ExecutionResult.SUCCESS
    assert editor.lines == ["0ne", "two", "three", "f0ur", "five"]


def test_bar_separated_commands_stop_at_a_raised_error(vim):
    assert vim.execute("let a = 1 | let b = nosuch | let c = 3") is ExecutionResult.ERROR
    assert vim.evaluate("exists('a')") == VimInt(1)
    assert vim.evaluate("exists('c')") == VimInt(0)


# -------------------------------
# History and the ":" register
# -------------------------------
def test_successful_commands_are_remembered(vim):
    vim.execute("echo 1")
    vim.execute("echo nosuch")
    vim.execute("echo 3", skip_history=True)
    vim.execute("execute 'echo 2'")
    assert history_texts(vim) == ["echo 1", "execute 'echo 2'"]
    assert vim.host.registers.get_register(":").text == "execute 'echo 2'"
    # the unnamed register only follows yanks and deletes
    assert vim.host.registers.get_register('"') is None


def test_history_command_lists_entries(vim):
    vim.execute("echo 1")
    vim.execute("echo 2")
    vim.execute("history")
    assert vim.host.messages.outputs[-1] == "      #  cmd history\n     1  echo 1\n     2  echo 2"


def test_exists_for_commands(vim):
    vim.execute("command Hello echo 'hi'")
    assert [vim.evaluate(f"exists('{name}')") for name in (":let", ":unl", ":nosuch", ":Hello", ":Nope")] == [
        VimInt(2), VimInt(1), VimInt(0), VimInt(2), VimInt(0),
    ]


# -------------------------------
# Output commands
# -------------------------------
@pytest.mark.parametrize(
    "text,expected",
    [
        ("echo 'a' 1 [2]", "a 1 [2]"),
        ("echon 'a' 'b'", "ab"),
        ("echo", ""),
    ],
)
def test_echo(vim, text, expected):
    vim.execute(text)
    assert vim.host.messages.outputs[-1] == expected


def test_echomsg_is_kept(vim):
    vim.execute("echomsg 'saved' 42")
    assert vim.host.messages.history == ["saved 42"]
    assert vim.host.messages.error_count == 0


# -------------------------------
# :execute, :call, :source and :@
# -------------------------------
def test_execute_builds_a_command_line(vim):
    vim.execute("let n = 5 | execute 'let g:x = ' .. n * 2")
    assert vim.evaluate("g:x") == VimInt(10)


def test_call_requires_a_function_call(vim):
    vim.execute("call 1 + 2")
    assert vim.host.messages.last_message == "E129: Function name required: 1 + 2"


def test_source_file(vim, tmp_path):
    script = tmp_path / "settings.vim"
    script.write_text("let s:hidden = 1\nlet g:sourced = s:hidden + 1\nfinish\nlet g:sourced = 0\n")
    assert vim.execute(f"source {script}") is ExecutionResult.SUCCESS
    assert vim.evaluate("g:sourced") == VimInt(2)


def test_source_missing_file(vim, tmp_path):
    missing = tmp_path / "missing.vim"
    vim.execute(f"source {missing}")
    assert vim.host.messages.last_message == f"E484: Can't open file {missing}"


def test_run_register(vim):
    assert vim.execute("@@") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E748: No previously used register"
    vim.execute("let @a = 'let g:n = get(g:, \"n\", 0) + 1'")
    vim.execute("@a")
    vim.execute("@@")
    assert vim.evaluate("g:n") == VimInt(2)


# -------------------------------
# :set
# -------------------------------
@pytest.mark.parametrize(
    "commands,query,expected",
    [
        (["set sw=4"], "set sw?", "  shiftwidth=4"),
        (["set sw=4", "set sw+=2"], "set shiftwidth?", "  shiftwidth=6"),
        (["set ic"], "set ic?", "  ignorecase"),
        (["set ic", "set noic"], "set ic?", "noignorecase"),
        (["set invic"], "set ic?", "  ignorecase"),
        (["set ic!", "set ic!"], "set ic?", "noignorecase"),
        (["set sw=2", "set sw&"], "set sw?", "  shiftwidth=8"),
        (["set et ts=4"], "set et? ts?", "  expandtab\n  tabstop=4"),
        ([], "set sw", "  shiftwidth=8"),
    ],
)
def test_set(vim, commands, query, expected):
    for command in commands:
        assert vim.execute(command) is ExecutionResult.SUCCESS
    vim.execute(query)
    assert vim.host.messages.outputs[-1] == expected


def test_set_lists_changed_options(vim):
    vim.execute("set sw=3")
    vim.execute("set")
    assert vim.host.messages.outputs[-1] == "  shiftwidth=3"


@pytest.mark.parametrize(
    "text,message",
    [
        ("set nosuch", "E518: Unknown option: nosuch"),
        ("set sw=x", "E521: Number required after =: sw=x"),
        ("set sw!", "E475: Invalid argument: sw"),
    ],
)
def test_set_errors(vim, text, message):
    assert vim.execute(text) is ExecutionResult.ERROR
    assert vim.host.messages.last_message == message


def test_ignorecase_default_from_environment(monkeypatch):
    monkeypatch.setenv("VIML_IGNORECASE", "yes")
    vim = Interpreter()
    assert vim.evaluate("&ignorecase") == VimInt(1)


# -------------------------------
# User commands
# -------------------------------
def test_define_and_run_user_command(vim):
    vim.execute("command Hello echo 'hi'")
    assert vim.execute("Hello") is ExecutionResult.SUCCESS
    assert vim.host.messages.outputs[-1] == "hi"
    # unique prefixes work too
    vim.execute("Hel")
    assert vim.host.messages.outputs[-1] == "hi"
    assert history_texts(vim) == ["command Hello echo 'hi'", "Hello", "Hel"]


@pytest.mark.parametrize(
    "definition,invocation,expected",
    [
        ("command -nargs=* Args echo [<f-args>]", "Args a b\\ c", "['a', 'b c']"),
        ("command -nargs=1 Say echo <q-args>", 'Say it\'s "x"', 'it\'s "x"'),
        ("command -nargs=? Raw echo '<args>'", "Raw word", "word"),
        ("command -bang Bang echo '<bang>'", "Bang!", "!"),
        ("command -range Lines echo <line1> <line2> <range>", "2,4Lines", "2 4 2"),
        ("command -range=% Whole echo <line1> <line2>", "Whole", "1 5"),
        ("command Less echo '<lt>args>'", "Less", "<args>"),
    ],
)
def test_user_command_escapes(vim, definition, invocation, expected):
    assert vim.execute(definition) is ExecutionResult.SUCCESS
    assert vim.execute(invocation) is ExecutionResult.SUCCESS, vim.host.messages.messages
    assert vim.host.messages.outputs[-1] == expected


def test_list_user_commands(vim):
    vim.execute("command -nargs=+ Grep echo <q-args>")
    vim.execute("command Hello echo 'hi'")
    vim.execute("command")
    assert vim.host.messages.outputs[-1] == "\n".join([
        "Name        Args       Definition",
        f"{'Grep':<12}{'+':<11}echo <q-args>",
        f"{'Hello':<12}{'0':<11}echo 'hi'",
    ])


@pytest.mark.parametrize(
    "text,message",
    [
        ("command hello echo 1", "E183: User defined commands must start with an uppercase letter"),
        ("command Next echo 1", "E841: Reserved name, cannot be used for user defined command"),
        ("command -nargs=2 Two echo 1", "E176: Invalid number of arguments"),
        ("command -range=x R echo 1", "E178: Invalid range: x"),
        ("command -count=x C echo 1", "E179: Invalid count: x"),
        ("command -wat W echo 1", "E181: Invalid attribute: -wat"),
        ("delcommand Nope", "E184: No such user-defined command: Nope"),
    ],
)
def test_user_command_definition_errors(vim, text, message):
    assert vim.execute(text) is ExecutionResult.ERROR
    assert vim.host.messages.last_message == message


def test_redefinition_requires_bang(vim):
    vim.execute("command Hello echo 1")
    vim.execute("command Hello echo 2")
    assert vim.host.messages.last_message == "E174: Command already exists: add ! to replace it: Hello"
    assert vim.execute("command! Hello echo 2") is ExecutionResult.SUCCESS
    vim.execute("Hello")
    assert vim.host.messages.outputs[-1] == "2"


@pytest.mark.parametrize(
    "text,message",
    [
        ("1Hello", "E481: No range allowed"),
        ("Hello!", "E477: No ! allowed"),
        ("Hello there", "E488: Trailing characters: there"),
        ("Need", "E471: Argument required"),
        ("Nope", "E492: Not an editor command: Nope"),
    ],
)
def test_user_command_invocation_errors(vim, text, message):
    vim.execute("command Hello echo 'hi'")
    vim.execute("command -nargs=1 Need echo <args>")
    assert vim.execute(text) is ExecutionResult.ERROR
    assert vim.host.messages.last_message == message


def test_ambiguous_user_command(vim):
    vim.execute("command Alpha echo 1")
    vim.execute("command Alps echo 2")
    vim.execute("Alp")
    assert vim.host.messages.last_message == "E464: Ambiguous use of user-defined command: Alp"


def test_delcommand(vim):
    vim.execute("command Hello echo 'hi'")
    assert vim.execute("delcommand Hello") is ExecutionResult.SUCCESS
    assert vim.execute("Hello") is ExecutionResult.ERROR


def test_alias_recursion_is_stopped(vim, monkeypatch):
    monkeypatch.setenv("VIML_MAX_ALIAS_DEPTH", "10")
    vim.execute("command Recur1 Recur2")
    vim.execute("command Recur2 Recur1")
    assert vim.execute("Recur1") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "recursion detected, maximum alias depth reached"


def test_alias_recursion_can_be_caught(vim, monkeypatch, echo):
    monkeypatch.setenv("VIML_MAX_ALIAS_DEPTH", "5")
    vim.execute("command Loop Loop")
    vim.execute("try | Loop | catch /recursion/ | let caught = v:exception | endtry")
    assert echo("caught") == "Vim(Loop):recursion detected, maximum alias depth reached"


# -------------------------------
# Shell commands
# -------------------------------
def test_repeat_without_previous_shell_command(vim):
    assert vim.execute("!!") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E34: No previous command"


def test_shell_command_output(vim, shell):
    vim.execute("set shell=/bin/bash")
    assert vim.execute("!echo hello") is ExecutionResult.SUCCESS
    assert shell.calls[-1] == ("/bin/bash", "echo hello", None)
    assert vim.host.messages.outputs[-1] == "hello"
    vim.execute("!! again")
    assert shell.calls[-1] == ("/bin/bash", "echo hello again", None)


def test_shell_filter_replaces_lines(vim, editor, shell):
    shell.output = ""
    assert vim.execute("2,3!sort") is ExecutionResult.SUCCESS
    assert editor.lines == ["one", "three", "two", "four", "five"]
    assert shell.calls[-1][2] == "two\nthree\n"


def test_shell_filter_on_read_only_buffer(read_only_editor, shell):
    vim = Interpreter(Host(editor=read_only_editor, shell=shell))
    assert vim.execute("1,2!sort") is ExecutionResult.ERROR
    assert shell.calls == []


def test_escaped_bang_is_literal(vim, shell):
    vim.execute("!echo \\!")
    assert shell.calls[-1][1] == "echo !"


def test_nested_global_is_refused(vim):
    vim.execute("g/one/g/two/d")
    assert vim.host.messages.last_message == "E147: Cannot do :global recursive"


def test_echoerr_can_be_caught(vim, echo):
    vim.execute("try | echoerr 'boom' | catch | let caught = v:exception | endtry")
    assert echo("caught") == "Vim(echoerr):boom"


class InterruptedShell:
    def __init__(self):
        self.calls = 0

    def run(self, shell, command, input=None):
        self.calls += 1
        raise KeyboardInterrupt


@pytest.mark.parametrize("text", ["!sleep 10", "2,3!sort"])
def test_interrupted_shell_command_is_reported(editor, text):
    shell = InterruptedShell()
    vim = Interpreter(Host(editor=editor, shell=shell))
    assert vim.execute(text) is ExecutionResult.ERROR
    assert shell.calls == 1
    assert vim.host.messages.last_message == "Command terminated"
    assert vim.host.messages.error_count == 1
    assert editor.lines == ["one", "two", "three", "four", "five"]


def test_interrupted_shell_command_can_be_caught(editor):
    vim = Interpreter(Host(editor=editor, shell=InterruptedShell()))
    vim.execute("try | execute '!sleep 10' | catch | let g:caught = v:exception | endtry")
    assert vim.evaluate("g:caught") == VimString("Vim(!):Command terminated")


# -------------------------------
# Dispatcher pre-steps
# -------------------------------
class KeepSelection(Command):
    __slots__ = ()
    flags = CommandHandlerFlags(flags=frozenset({Flag.SAVE_VISUAL}))
    shape = ExecutionShape.SINGLE_EXECUTION

    def execute(self, vim, context, caret):
        return ExecutionResult.SUCCESS


class NeedsRange(KeepSelection):
    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_REQUIRED)


def test_commands_leave_visual_mode(vim, editor):
    editor.visual = True
    assert vim.execute("echo 1") is ExecutionResult.SUCCESS
    assert not editor.in_visual_mode()


def test_saving_commands_keep_visual_mode(vim, editor):
    editor.visual = True
    command = KeepSelection(Range(), "keep", "", False, "keep")
    assert vim.dispatcher.run_command(command, ExecutionContext()) is ExecutionResult.SUCCESS
    assert editor.in_visual_mode()


def test_range_required(vim):
    command = NeedsRange(Range(), "need", "", False, "need")
    with pytest.raises(MissingRange) as info:
        vim.dispatcher.run_command(command, ExecutionContext())
    assert str(info.value) == "E14: Range required"
    assert info.value.command == "need"


def test_count_default_leaves_the_parsed_command_alone(vim, editor):
    command = parse_command("go")
    resolved = CommandDispatcher.validate(command)
    assert resolved.range.default_line == 1
    assert command.range == Range()
    editor.primary_caret().move_to(3)
    assert vim.dispatcher.run_command(command, ExecutionContext()) is ExecutionResult.SUCCESS
    assert editor.primary_caret().line == 0
    assert command.range == Range()


# -------------------------------
# execute() reports, never raises
# -------------------------------
@pytest.mark.parametrize(
    "text,message",
    [
        ("let x = nosuch", "E121: Undefined variable: nosuch"),
        ("call nosuch()", "E117: Unknown function: nosuch"),
        ("frobnicate", "E492: Not an editor command: frobnicate"),
    ],
)
def test_execute_reports_errors_once(vim, text, message):
    assert vim.execute(text) is ExecutionResult.ERROR
    assert vim.host.messages.error_count == 1
    assert vim.host.messages.last_message == message
    assert vim.evaluate("v:errmsg") == VimString(message)
