from pathlib import Path

import pytest

# Make sure all projects are loaded so that target_manager gets populated
from pydepcache.projects import *  # noqa: F401, F403, RUF100
from pydepcache.projects.pseudotargets import BuildAll
from pydepcache.projects.simple_project import SimpleProject
from pydepcache.targets import Target, target_manager
from .setup_mock_config import setup_mock_config


class _OrderTestProject(SimpleProject):
    do_not_add_to_targets = True

    def process(self) -> None:
        pass


class BuildOrderTestLeaf(_OrderTestProject):
    target = "order-test-leaf"


class BuildOrderTestMiddle(_OrderTestProject):
    target = "order-test-middle"
    dependencies = ("order-test-leaf",)


class BuildOrderTestTop(_OrderTestProject):
    target = "order-test-top"
    dependencies = ("order-test-middle",)


class BuildCycleTestA(_OrderTestProject):
    target = "cycle-test-a"
    dependencies = ("cycle-test-b",)


class BuildCycleTestB(_OrderTestProject):
    target = "cycle-test-b"
    dependencies = ("cycle-test-a",)


class BuildRegistryTestBase(_OrderTestProject):
    # class names ending in Base are ordinary targets
    target = "registry-test-base"


# noinspection PyProtectedMember
def _sort_targets(targets: "list[str]", *, add_dependencies=False) -> "list[str]":
    target_manager.reset()
    global_config = setup_mock_config(Path("/this/path/does/not/exist"))
    global_config.include_dependencies = add_dependencies
    real_targets = list(target_manager.get_target(t, config=global_config) for t in targets)
    for t in target_manager.targets():
        assert t.project_class._full_dependencies_cache is None
        assert t.project_class._dependencies_cache is None
    return list(t.name for t in target_manager.get_all_targets(real_targets, global_config))


@pytest.mark.parametrize(
    ("targets", "add_dependencies", "expected"),
    [
        pytest.param(["order-test-top"], False, ["order-test-top"], id="no-deps"),
        pytest.param(["order-test-top"], True, ["order-test-leaf", "order-test-middle", "order-test-top"],
                     id="with-deps"),
        # explicitly requested targets are reordered even without -d
        pytest.param(["order-test-top", "order-test-leaf"], False, ["order-test-leaf", "order-test-top"],
                     id="reorder"),
        pytest.param(["order-test-leaf", "gmp", "order-test-middle"], False,
                     ["order-test-leaf", "gmp", "order-test-middle"], id="stable"),
        pytest.param(["gmp", "gmp"], False, ["gmp"], id="duplicates"),
    ],
)
def test_dependency_order(targets: "list[str]", add_dependencies: bool, expected: "list[str]"):
    assert _sort_targets(targets, add_dependencies=add_dependencies) == expected


def test_all_target():
    result = _sort_targets(["all"])
    # the alias always pulls in its dependencies and is processed last
    assert result[-1] == "all"
    assert sorted(result[:-1]) == sorted(BuildAll.dependencies)
    assert "diagnostics" not in result


def test_every_library_is_part_of_all():
    ignored = ("all", "diagnostics", "order-test-leaf", "order-test-middle", "order-test-top", "cycle-test-a",
               "cycle-test-b", "registry-test-base")
    libraries = [t for t in target_manager.non_alias_target_names() if t not in ignored and
                 not t.startswith("fake-")]
    assert sorted(libraries) == sorted(BuildAll.dependencies)


def test_cyclic_dependency(capsys):
    with pytest.raises(SystemExit):
        _sort_targets(["cycle-test-a"], add_dependencies=True)
    assert "Cyclic dependency found: cycle-test-a -> cycle-test-b -> cycle-test-a" in capsys.readouterr().err


def test_unknown_target():
    target_manager.reset()
    config = setup_mock_config(Path("/this/path/does/not/exist"))
    config.targets = ["gmpp"]
    with pytest.raises(SystemExit) as e:
        target_manager.get_all_chosen_targets(config)
    assert "Target gmpp does not exist" in str(e.value.code)
    assert "Did you mean" in str(e.value.code)
    assert "gmp" in str(e.value.code)


def test_hyphenated_target_names():
    for name in ("llama-cpp", "linq-for-cpp", "nlohmann-json", "sqlite3", "duckdb"):
        assert isinstance(target_manager.get_target_raw(name), Target)


def test_target_aliases():
    assert target_manager.get_target("sqlite", None) is target_manager.get_target_raw("sqlite3")
    assert target_manager.get_target("llama", None) is target_manager.get_target_raw("llama-cpp")
    assert "sqlite" not in list(target_manager.non_alias_target_names())
    config = setup_mock_config(Path("/this/path/does/not/exist"))
    config.targets = ["sqlite", "sqlite3"]
    target_manager.reset()
    # The alias and the real target must only be built once
    assert [t.name for t in target_manager.get_all_chosen_targets(config)] == ["sqlite3"]


def test_class_name_ending_in_base_is_registered():
    target = target_manager.get_target_raw("registry-test-base")
    assert target.project_class is BuildRegistryTestBase
    assert _sort_targets(["registry-test-base"]) == ["registry-test-base"]
