from __future__ import annotations

import ast
import logging
from pathlib import Path

import pytest

from lockorder.analysis.visitors import ImportVisitor
from lockorder.config import AnalysisConfig
from lockorder.exceptions import (
    ErrorKind,
    MissingScopeError,
    SourceLoadError,
    UnsupportedArgumentError,
)
from lockorder.ingest.python_ingest import (
    build_symbol_table,
    collect_lock_sites,
    discover_lock_events,
    is_lock_call,
    iter_python_paths,
    module_name,
    parse_module,
)


def _resources(discovery) -> list[tuple[str, str]]:
    return [(event.scope_key, event.resource_type) for event in discovery.events]


def test_iter_python_paths_expands_and_filters(tmp_path: Path, write_module) -> None:
    include = write_module("pkg/mod.py", "def f():\n    pass\n")
    write_module("pkg/notes.txt", "x")
    write_module(".venv/skip.py", "def g():\n    pass\n")

    config = AnalysisConfig(project_root=tmp_path, exclude_dirs={".venv"})
    paths = iter_python_paths([tmp_path], config=config)
    assert paths == [include]


def test_iter_python_paths_keeps_explicit_files_and_dedupes(write_module, analysis_config) -> None:
    source = write_module("mod.py", "x = 1\n")
    assert iter_python_paths([source, str(source)], config=analysis_config) == [source]


def test_iter_python_paths_dedupes_by_resolved_file(
    tmp_path: Path, write_module, analysis_config, monkeypatch
) -> None:
    source = write_module("pkg/mod.py", "x = 1\n")
    monkeypatch.chdir(tmp_path)
    relative = Path("pkg/mod.py")
    assert iter_python_paths([relative, source], config=analysis_config) == [relative]
    assert iter_python_paths([tmp_path, relative], config=analysis_config) == [source]


def test_module_name_follows_packages(write_module) -> None:
    write_module("src/app/__init__.py", "")
    write_module("src/app/net/__init__.py", "")
    leaf = write_module("src/app/net/consts.py", "")
    script = write_module("scripts/tool.py", "")
    assert module_name(leaf) == "app.net.consts"
    assert module_name(leaf.parent / "__init__.py") == "app.net"
    assert module_name(script) == "tool"


def test_literal_names_and_positions(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        VNET = "vnet"


        def create(client):
            locks.by_name("a", VNET)
            locks.by_name("b", "subnet")
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [(e.resource_type, e.scope_key, e.position) for e in discovery.events] == [
        ("vnet", "mod.py:6:1", "mod.py:7:5"),
        ("subnet", "mod.py:6:1", "mod.py:8:5"),
    ]
    assert discovery.dropped == []


def test_parallel_name_value_lists_resolve(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        VNET, SUBNET = "vnet", "subnet"
        NIC = PIP = "nic"


        def create():
            locks.by_name("a", SUBNET)
            locks.by_name("a", VNET)
            locks.multiple_by_name(["x"], PIP)
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == ["subnet", "vnet", "nic"]


def test_mismatched_or_non_literal_bindings_are_dropped(write_module, analysis_config, caplog) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        A, B = "a", "b", "c"
        COMPUTED = "x" + "y"
        CHANGED = "one"
        CHANGED = "two"


        def create():
            locks.by_name("n", A)
            locks.by_name("n", COMPUTED)
            locks.by_name("n", CHANGED)
            locks.by_name("n", UNKNOWN)
            locks.by_name("n", "kept")
        """,
    )
    with caplog.at_level(logging.WARNING, logger="lockorder.ingest.python_ingest"):
        discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == ["kept"]
    assert [site.position for site in discovery.dropped] == [
        "mod.py:10:5",
        "mod.py:11:5",
        "mod.py:12:5",
        "mod.py:13:5",
    ]
    assert "lock site dropped" in caplog.text


def test_repeated_identical_binding_stays_resolvable(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        VNET = "vnet"
        VNET = "vnet"


        def create():
            locks.by_name("a", VNET)
        """,
    )
    events = list(discover_lock_events([analysis_config.project_root], config=analysis_config))
    assert [event.resource_type for event in events] == ["vnet"]


def test_constants_resolve_across_modules(write_module, analysis_config) -> None:
    write_module("app/__init__.py", "from .consts import SUBNET\n")
    write_module(
        "app/consts.py",
        """
        VNET = "vnet"
        SUBNET = "subnet"


        class ResourceTypes:
            NIC = "nic"
        """,
    )
    write_module(
        "app/network.py",
        """
        import app.consts
        from app import locks
        from app import consts as c
        from app import SUBNET
        from .consts import ResourceTypes, VNET as V


        def create():
            locks.by_name("a", app.consts.VNET)
            locks.by_name("a", c.SUBNET)
            locks.by_name("a", SUBNET)
            locks.by_name("a", ResourceTypes.NIC)
            locks.by_name("a", V)
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == [
        "vnet",
        "subnet",
        "subnet",
        "nic",
        "vnet",
    ]
    assert discovery.dropped == []


def test_class_and_function_scoped_constants(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        NAME = "module"


        class Service:
            NAME = "class"

            def run(self):
                locks.by_name("a", NAME)
                locks.by_name("a", Service.NAME)
                locks.by_name("a", self.NAME)


        def local():
            NAME = "local"
            locks.by_name("a", NAME)


        def shadowed(NAME):
            locks.by_name("a", NAME)
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == ["module", "class", "local"]
    assert [site.position for site in discovery.dropped] == ["mod.py:12:9", "mod.py:21:5"]


def test_nearest_enclosing_function_is_the_scope(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks


        def outer():
            locks.by_name("a", "vnet")

            def inner():
                locks.by_name("a", "subnet")

            callback = lambda: locks.by_name("a", "nic")
            locks.by_name("a", "pip")


        class Handler:
            async def handle(self):
                locks.by_name("a", "lb")
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert _resources(discovery) == [
        ("mod.py:4:1", "vnet"),
        ("mod.py:7:5", "subnet"),
        ("mod.py:4:1", "nic"),
        ("mod.py:4:1", "pip"),
        ("mod.py:15:5", "lb"),
    ]


def test_traversal_follows_source_order(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks


        def create(flag):
            if flag:
                locks.by_name("a", "first")
            else:
                locks.by_name("a", "second")
            for _ in range(2):
                locks.by_name("a", "third")
            with locks.by_name("a", "fourth"):
                wrap(locks.by_name("a", "fifth"))
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == [
        "first",
        "second",
        "third",
        "fourth",
        "fifth",
    ]


def test_lock_call_arguments_are_not_searched(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks


        def create():
            locks.by_name(locks.by_name("x", "inner"), "outer")
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == ["outer"]


def test_keyword_resource_argument(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app.locks import by_name


        def create():
            by_name(name="a", resource_type="vnet")
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert [event.resource_type for event in discovery.events] == ["vnet"]


def test_custom_lock_functions_and_argument_index(tmp_path: Path, write_module) -> None:
    write_module(
        "mod.py",
        """
        import threading_ext as tx
        from app import locks


        def create():
            tx.acquire("vnet")
            locks.by_name("a", "ignored")
        """,
    )
    config = AnalysisConfig(
        project_root=tmp_path,
        lock_functions=("threading_ext.acquire",),
        resource_arg=0,
    )
    discovery = collect_lock_sites([tmp_path], config=config)
    assert [event.resource_type for event in discovery.events] == ["vnet"]


def test_is_lock_call_matches_on_dotted_suffix() -> None:
    tree = ast.parse(
        "from app.internal import locks\n"
        "import other.locks as ol\n"
        "locks.by_name('a', 'b')\n"
        "ol.by_name('a', 'b')\n"
        "mylocks.by_name('a', 'b')\n"
        "get().by_name('a', 'b')\n"
    )
    table = build_symbol_table([])
    ImportVisitor("mod", table).visit(tree)
    calls = [node for node in ast.walk(tree) if isinstance(node, ast.Call) and node.args]
    matched = [
        is_lock_call(call, module="mod", table=table, lock_functions=("locks.by_name",))
        for call in calls
    ]
    assert matched == [True, True, False, False]


@pytest.mark.parametrize(
    "argument",
    ['f"{prefix}-vnet"', "get_type()", "TYPES[0]", "1"],
)
def test_unsupported_argument_shape_is_fatal(write_module, analysis_config, argument: str) -> None:
    write_module(
        "mod.py",
        f"""
        from app import locks


        def create(prefix):
            locks.by_name("a", {argument})
        """,
    )
    with pytest.raises(UnsupportedArgumentError) as exc:
        collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert exc.value.kind is ErrorKind.UNSUPPORTED_ARGUMENT
    assert exc.value.position == "mod.py:5:5"


def test_missing_resource_argument_is_fatal(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks


        def create():
            locks.by_name("a")
        """,
    )
    with pytest.raises(UnsupportedArgumentError):
        collect_lock_sites([analysis_config.project_root], config=analysis_config)


def test_lock_call_outside_function_is_an_invariant_violation(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        locks.by_name("a", "vnet")
        """,
    )
    with pytest.raises(MissingScopeError) as exc:
        collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert exc.value.kind is ErrorKind.MISSING_SCOPE
    assert exc.value.position == "mod.py:3:1"


def test_unresolvable_lock_outside_function_is_dropped_first(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        locks.by_name("a", UNKNOWN)
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert discovery.events == []
    assert len(discovery.dropped) == 1


def test_parse_failure_is_a_load_error(write_module, analysis_config) -> None:
    bad = write_module("bad.py", "def broken(:\n    pass\n")
    with pytest.raises(SourceLoadError) as exc:
        parse_module(bad, root=analysis_config.project_root)
    assert exc.value.kind is ErrorKind.LOAD_FAILURE
    assert exc.value.position.startswith("bad.py:1:")
    with pytest.raises(SourceLoadError):
        collect_lock_sites([analysis_config.project_root], config=analysis_config)


def test_unreadable_source_is_a_load_error(tmp_path: Path) -> None:
    binary = tmp_path / "binary.py"
    binary.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(SourceLoadError):
        parse_module(binary, root=tmp_path)


def test_parallel_discovery_matches_serial(tmp_path: Path, write_module) -> None:
    for index in range(6):
        write_module(
            f"pkg/mod{index}.py",
            f"""
            from app import locks


            def create{index}():
                locks.by_name("a", "r{index}")
                locks.by_name("a", "r{index + 1}")
            """,
        )
    serial = collect_lock_sites([tmp_path], config=AnalysisConfig(project_root=tmp_path))
    parallel = collect_lock_sites(
        [tmp_path], config=AnalysisConfig(project_root=tmp_path, jobs=4)
    )
    assert serial.events == parallel.events
    assert len(serial.events) == 12


def test_lambda_parameters_shadow_module_constants(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        VNET = "vnet"


        def create(n):
            apply = lambda VNET: locks.by_name(n, VNET)
            locks.by_name(n, VNET)
            return apply
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert _resources(discovery) == [("mod.py:6:1", "vnet")]
    assert [site.position for site in discovery.dropped] == ["mod.py:7:26"]


def test_global_rebinding_applies_to_module_constant(write_module, analysis_config) -> None:
    write_module(
        "mod.py",
        """
        from app import locks

        CURRENT = "subnet"
        KEPT = "vnet"


        def reset():
            global CURRENT
            CURRENT = compute()
            KEPT = compute()


        def use():
            locks.by_name("a", CURRENT)
            locks.by_name("a", KEPT)
        """,
    )
    discovery = collect_lock_sites([analysis_config.project_root], config=analysis_config)
    assert _resources(discovery) == [("mod.py:13:1", "vnet")]
    assert [site.position for site in discovery.dropped] == ["mod.py:14:5"]
