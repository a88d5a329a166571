import pytest

from viml.commands.command import ExecutionResult
from viml.errors import IllegalVariableName, LockedValue, ReadOnlyVariable, UndefinedVariable
from viml.types.context import ExecutionContext
from viml.types.environment import Scope, Variable, VariableStore
from viml.types.values import VimDictionary, VimInt, VimList, VimString


@pytest.fixture
def store():
    return VariableStore()


@pytest.mark.parametrize(
    "source,scope,name",
    [
        ("x", None, "x"),
        ("g:x", Scope.GLOBAL, "x"),
        ("s:var_1", Scope.SCRIPT, "var_1"),
        ("a:000", Scope.FUNCTION_ARGUMENT, "000"),
        ("v:", Scope.VIM, ""),
    ],
)
def test_variable_names(source, scope, name):
    variable = Variable.parse(source)
    assert (variable.scope, variable.name) == (scope, name)
    assert str(variable) == source


@pytest.mark.parametrize("source", ["1x", "g:1", "x-y", ""])
def test_illegal_variable_names(source):
    with pytest.raises(IllegalVariableName) as info:
        Variable.parse(source)
    assert info.value.code == "E461"


def test_store_and_get(store):
    context = ExecutionContext()
    store.store(Variable.parse("x"), VimInt(1), context)
    assert store.get(Variable.parse("g:x"), context) == VimInt(1)
    with pytest.raises(UndefinedVariable):
        store.get(Variable.parse("y"), context)


def test_script_scope_requires_a_script(store):
    with pytest.raises(IllegalVariableName):
        store.store(Variable.parse("s:x"), VimInt(1), ExecutionContext())
    context = ExecutionContext(script=VimDictionary())
    store.store(Variable.parse("s:x"), VimInt(1), context)
    assert context.script.dictionary["x"] == VimInt(1)


def test_vim_variables_are_read_only(store):
    context = ExecutionContext()
    with pytest.raises(ReadOnlyVariable) as info:
        store.store(Variable.parse("v:true"), VimInt(0), context)
    assert str(info.value) == 'E46: Cannot change read-only variable "v:true"'
    store.store(Variable.parse("v:errmsg"), VimString("ok"), context)


def test_binding_lock_depth_zero(store):
    context = ExecutionContext()
    variable = Variable.parse("l")
    store.store(variable, VimList([VimInt(1)]), context)
    store.lock(variable, 0, context)
    with pytest.raises(LockedValue):
        store.store(variable, VimInt(2), context)
    # the List itself is still mutable
    assert not store.get(variable, context).is_locked
    store.unlock(variable, 0, context)
    store.store(variable, VimInt(2), context)


# -------------------------------
# :let and :unlet
# -------------------------------
def test_let_assigns_and_shares_containers(vim):
    vim.execute("let a = [1, 2] | let b = a | call add(b, 3)")
    assert vim.evaluate("a") == VimList([VimInt(1), VimInt(2), VimInt(3)])


@pytest.mark.parametrize(
    "commands,expression,expected",
    [
        (["let x = 1", "let x += 2"], "x", VimInt(3)),
        (["let s = 'a'", "let s .= 'b'"], "s", VimString("ab")),
        (["let [a, b] = [1, 2]"], "a + b", VimInt(3)),
        (["let [a; rest] = [1, 2, 3]"], "rest", VimList([VimInt(2), VimInt(3)])),
        (["let d = {}", "let d.k = 5"], "d['k']", VimInt(5)),
        (["let d = {'k': {'n': 1}}", "let d.k.n += 1"], "d.k.n", VimInt(2)),
        (["let l = [1, 2, 3]", "let l[1] = 9"], "l", VimList([VimInt(1), VimInt(9), VimInt(3)])),
        (["let l = [1, 2, 3]", "let l[0:1] = [7, 8]"], "l", VimList([VimInt(7), VimInt(8), VimInt(3)])),
        (["let l = [1]", "let l += [2]"], "l", VimList([VimInt(1), VimInt(2)])),
        (["let &sw = 4"], "&shiftwidth", VimInt(4)),
        (["let g:x = 1", "unlet g:x"], "exists('x')", VimInt(0)),
        (["let d = {'a': 1, 'b': 2}", "unlet d.a"], "keys(d)", VimList([VimString("b")])),
        (["let l = [1, 2, 3, 4]", "unlet l[1:2]"], "l", VimList([VimInt(1), VimInt(4)])),
    ],
)
def test_let_forms(vim, commands, expression, expected):
    for command in commands:
        assert vim.execute(command) is ExecutionResult.SUCCESS, vim.host.messages.messages
    assert vim.evaluate(expression) == expected


@pytest.mark.parametrize(
    "command,message",
    [
        ("let [a, b] = [1]", "E688: More targets than List items"),
        ("let [a] = [1, 2]", "E687: Less targets than List items"),
        ("let v:true = 0", 'E46: Cannot change read-only variable "v:true"'),
        ("unlet nosuch", 'E108: No such variable: "nosuch"'),
        ("let x = [] | let x -= [1]", "E734: Wrong variable type for -="),
        ("let l = [1] | let l[3] = 2", "E684: List index out of range: 3"),
    ],
)
def test_let_errors(vim, command, message):
    assert vim.execute(command) is ExecutionResult.ERROR
    assert vim.host.messages.last_message == message
    assert vim.host.messages.error_count == 1


def test_unlet_bang_ignores_missing_variables(vim):
    assert vim.execute("unlet! nosuch") is ExecutionResult.SUCCESS


def test_let_records_errmsg(vim):
    vim.execute("echo undefined_thing")
    assert vim.evaluate("v:errmsg") == VimString("E121: Undefined variable: undefined_thing")


# -------------------------------
# :lockvar
# -------------------------------
def test_lockvar_default_depth_locks_items(vim):
    vim.execute("let l = [1, 2] | lockvar l")
    assert vim.execute("let l[0] = 5") is ExecutionResult.ERROR
    assert vim.host.messages.last_message.startswith("E741: Value is locked")
    assert vim.evaluate("islocked('l')") == VimInt(1)


def test_lockvar_depth_one_allows_item_replacement(vim):
    vim.execute("let l = [1, 1] | lockvar 1 l")
    assert vim.execute("let l[1] = 2") is ExecutionResult.SUCCESS
    assert vim.evaluate("l") == VimList([VimInt(1), VimInt(2)])
    assert vim.execute("call add(l, 3)") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E741: Value is locked: add() argument"


def test_lockvar_depth_zero_only_locks_binding(vim):
    vim.execute("let l = [1] | lockvar 0 l")
    assert vim.execute("call add(l, 2)") is ExecutionResult.SUCCESS
    assert vim.execute("let l = []") is ExecutionResult.ERROR


def test_locked_element_blocks_assignment_but_not_remove(vim):
    vim.execute("let l = [[1], [2]] | lockvar 1 l[0]")
    assert vim.execute("let l[0] = 5") is ExecutionResult.ERROR
    assert vim.host.messages.last_message.startswith("E741")
    assert vim.execute("call remove(l, 0)") is ExecutionResult.SUCCESS
    assert vim.evaluate("l") == VimList([VimList([VimInt(2)])])


def test_remove_fails_on_locked_container(vim):
    vim.execute("let l = [1, 2] | lockvar 1 l")
    assert vim.execute("call remove(l, 0)") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E741: Value is locked: remove() argument"
    assert vim.evaluate("l") == VimList([VimInt(1), VimInt(2)])


def test_unlockvar_restores_mutation(vim):
    vim.execute("let d = {'a': 1} | lockvar d | unlockvar d")
    assert vim.execute("let d.b = 2") is ExecutionResult.SUCCESS
    assert vim.evaluate("islocked('d')") == VimInt(0)


def test_lock_of_a_scalar_does_not_travel_with_copies(vim):
    vim.execute("let x = 1 | lockvar x | let y = x")
    assert vim.execute("let y = 2") is ExecutionResult.SUCCESS
    assert vim.execute("let x = 2") is ExecutionResult.ERROR


@pytest.mark.parametrize(
    "lock,command",
    [
        ("lockvar x", "let l[0] = 7"),
        ("lockvar x", "call filter(l, 'v:val == 1')"),
        ("lockvar x", "call map(l, 'v:val + 1')"),
        ("lockvar 2 d", "let l[0] = 7"),
        ("lockvar 2 m", "let l[0] = 7"),
    ],
)
def test_locking_a_scalar_leaves_earlier_copies_alone(vim, lock, command):
    vim.execute("let x = 5 | let l = [x, 1] | let d = {'k': x} | let m = [x]")
    vim.execute(lock)
    assert vim.execute(command) is ExecutionResult.SUCCESS, vim.host.messages.messages


def test_copy_of_a_locked_list_has_unlocked_items(vim):
    vim.execute("let l = [1, 'a'] | lockvar l | let c = copy(l)")
    assert vim.execute("let c[0] = 2 | let c[1] = 'b'") is ExecutionResult.SUCCESS
    assert vim.evaluate("c") == VimList([VimInt(2), VimString("b")])
    assert vim.execute("let l[0] = 2") is ExecutionResult.ERROR
