import pytest

from appcore.core.extensions.registry import ExtensionRegistry


def test_fold_runs_in_priority_then_registration_order():
    reg = ExtensionRegistry()
    reg.add("p", lambda acc: acc + ["b"], priority=10)
    reg.add("p", lambda acc: acc + ["a"], priority=5)
    reg.add("p", lambda acc: acc + ["c"], priority=10)
    assert reg.apply("p", []) == ["a", "b", "c"]
    assert reg.apply_resilient("p", []) == ["a", "b", "c"]


def test_extra_args_are_passed_through():
    reg = ExtensionRegistry()
    reg.add("p", lambda acc, x, y: acc + x * y)
    assert reg.apply("p", 1, 2, 3) == 7


def test_unknown_point_returns_value_unchanged():
    assert ExtensionRegistry().apply_resilient("nothing", {"a": 1}) == {"a": 1}


def test_strict_fold_propagates_errors():
    reg = ExtensionRegistry()
    reg.add("p", lambda acc: 1 / 0)
    with pytest.raises(ZeroDivisionError):
        reg.apply("p", 1)


def test_resilient_fold_skips_failing_and_none_contributions():
    reg = ExtensionRegistry()

    def mutate_then_fail(acc):
        acc.append("poison")
        raise RuntimeError("boom")

    reg.add("p", lambda acc: acc + ["first"], priority=1)
    reg.add("p", mutate_then_fail, priority=2)
    reg.add("p", lambda acc: None, priority=3)
    reg.add("p", lambda acc: acc + ["last"], priority=4)

    assert reg.apply_resilient("p", []) == ["first", "last"]


def test_resilient_fold_does_not_mutate_input():
    reg = ExtensionRegistry()

    def append(acc):
        acc.append(1)
        return acc

    reg.add("p", append)
    original = []
    assert reg.apply_resilient("p", original) == [1]
    assert original == []


def test_remove_has_and_points():
    reg = ExtensionRegistry()

    def fn(acc):
        return acc

    reg.add("b", fn)
    reg.add("a", fn)
    assert reg.has("a")
    assert reg.points() == ["a", "b"]
    assert reg.remove("a", fn)
    assert not reg.has("a")
    assert reg.remove("a", fn) is False


def test_clear():
    reg = ExtensionRegistry()
    reg.add("a", lambda acc: acc)
    reg.add("b", lambda acc: acc)
    reg.clear("a")
    assert reg.points() == ["b"]
    reg.clear()
    assert reg.points() == []


def test_add_validates_arguments():
    reg = ExtensionRegistry()
    with pytest.raises(ValueError):
        reg.add("", lambda acc: acc)
    with pytest.raises(TypeError):
        reg.add("p", "not callable")


def test_emit_calls_every_action_and_survives_failures():
    reg = ExtensionRegistry()
    seen = []
    reg.add("created", lambda i, data: seen.append(("first", i)), priority=1)
    reg.add("created", lambda i, data: 1 / 0, priority=2)
    reg.add("created", lambda i, data: seen.append(("third", i)), priority=3)
    reg.emit("created", 7, {})
    assert seen == [("first", 7), ("third", 7)]
