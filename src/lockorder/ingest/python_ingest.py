"""Discover lock acquisitions in Python source.

Every file is parsed before any event is produced: constants may be declared
in one module and referenced from another, so the symbol table covers the
whole input set. Lock calls are then visited depth-first in source order,
which is how acquisition order within a function is approximated. Branches,
loops and deferred calls are not sequenced; two acquisitions in different
arms of an ``if`` are still reported in textual order.
"""

from __future__ import annotations

import ast
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from lockorder.analysis.model import LockEvent
from lockorder.analysis.visitors import (
    ConstantVisitor,
    ImportVisitor,
    LockCallVisitor,
    dotted_name,
)
from lockorder.config import AnalysisConfig
from lockorder.exceptions import MissingScopeError, SourceLoadError, UnsupportedArgumentError
from lockorder.invariants import never
from lockorder.order_contract import sort_once

logger = logging.getLogger(__name__)

_MAX_REEXPORT_DEPTH = 8

ScopeChain = tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class ParsedModule:
    path: Path
    module: str
    display_path: str
    tree: ast.Module
    is_package: bool = False


@dataclass(frozen=True)
class DroppedLockSite:
    position: str
    reason: str


@dataclass(frozen=True)
class ModuleLockScan:
    module: ParsedModule
    events: tuple[LockEvent, ...]
    dropped: tuple[DroppedLockSite, ...]


@dataclass(frozen=True)
class LockSiteDiscovery:
    files: tuple[Path, ...]
    scans: tuple[ModuleLockScan, ...]

    @property
    def events(self) -> list[LockEvent]:
        return [event for scan in self.scans for event in scan.events]

    @property
    def dropped(self) -> list[DroppedLockSite]:
        return [site for scan in self.scans for site in scan.dropped]


@dataclass
class SymbolTable:
    imports: dict[tuple[str, str], str] = field(default_factory=dict)
    constants: dict[str, str] = field(default_factory=dict)
    ambiguous: set[str] = field(default_factory=set)
    modules: set[str] = field(default_factory=set)
    packages: set[str] = field(default_factory=set)

    def is_package(self, module: str) -> bool:
        return module in self.packages

    def bind_constant(self, key: str, value: str) -> None:
        if key in self.ambiguous:
            return
        existing = self.constants.get(key)
        if existing is not None and existing != value:
            self.mark_ambiguous(key)
            return
        self.constants[key] = value

    def mark_ambiguous(self, key: str) -> None:
        self.ambiguous.add(key)
        self.constants.pop(key, None)

    def expand(self, module: str, dotted: str) -> str | None:
        """Expand the head of ``dotted`` through the module's imports."""
        head, _, rest = dotted.partition(".")
        target = self.imports.get((module, head))
        if target is None:
            return None
        return f"{target}.{rest}" if rest else target

    def lookup(self, fqn: str, *, depth: int = 0) -> str | None:
        if fqn in self.ambiguous:
            return None
        value = self.constants.get(fqn)
        if value is not None:
            return value
        if depth >= _MAX_REEXPORT_DEPTH:
            return None
        # Follow re-exports such as ``from .consts import VNET`` in a package.
        parts = fqn.split(".")
        for split in range(len(parts) - 1, 0, -1):
            module = ".".join(parts[:split])
            if module not in self.modules:
                continue
            expanded = self.expand(module, ".".join(parts[split:]))
            if expanded is not None and expanded != fqn:
                return self.lookup(expanded, depth=depth + 1)
            return None
        return None

    def resolve_name(self, module: str, scopes: ScopeChain, name: str) -> str | None:
        names = [scope_name for scope_name, _kind in scopes]
        for depth in range(len(scopes), -1, -1):
            # Class bodies are not visible from the functions nested in them.
            if 0 < depth < len(scopes) and scopes[depth - 1][1] == "class":
                continue
            key = ".".join([module, *names[:depth], name])
            if key in self.ambiguous:
                return None
            if key in self.constants:
                return self.constants[key]
        target = self.imports.get((module, name))
        if target is None:
            return None
        return self.lookup(target)

    def resolve_attribute(self, module: str, dotted: str) -> str | None:
        expanded = self.expand(module, dotted)
        if expanded is not None:
            return self.lookup(expanded)
        return self.lookup(f"{module}.{dotted}")


def iter_python_paths(paths: Iterable[str | Path], *, config: AnalysisConfig) -> list[Path]:
    """Expand input paths to python files, pruning ignored directories early."""
    out: list[Path] = []
    for p in paths:
        path = Path(p)
        if path.is_dir():
            for root, dirnames, filenames in os.walk(path, topdown=True):
                if config.exclude_dirs:
                    dirnames[:] = [d for d in dirnames if d not in config.exclude_dirs]
                dirnames[:] = sort_once(dirnames, source="iter_python_paths.dirnames")
                for filename in sort_once(filenames, source="iter_python_paths.filenames"):
                    if not filename.endswith(".py"):
                        continue
                    candidate = Path(root) / filename
                    if config.is_ignored_path(candidate):
                        continue
                    out.append(candidate)
        else:
            if config.is_ignored_path(path):
                continue
            out.append(path)
    # One entry per file on disk; the first spelling given wins.
    seen: set[Path] = set()
    unique: list[Path] = []
    for candidate in out:
        resolved = candidate.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        unique.append(candidate)
    return sort_once(unique, source="iter_python_paths.out")


def module_name(path: Path) -> str:
    """Dotted module name, walking up through ``__init__.py`` packages."""
    resolved = path.resolve()
    parts = [] if resolved.stem == "__init__" else [resolved.stem]
    parent = resolved.parent
    while (parent / "__init__.py").is_file():
        parts.append(parent.name)
        if parent.parent == parent:
            break
        parent = parent.parent
    if not parts:
        return resolved.parent.name
    return ".".join(reversed(parts))


def display_path(path: Path, root: Path | None) -> str:
    base = (root or Path.cwd()).resolve()
    resolved = path.resolve()
    try:
        return resolved.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


def render_position(display: str, node: ast.AST) -> str:
    return f"{display}:{node.lineno}:{node.col_offset + 1}"


def parse_module(path: Path, *, root: Path | None = None) -> ParsedModule:
    display = display_path(path, root)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceLoadError(
            f"cannot read source: {exc}", position=display, env={"stage": "read"}
        ) from exc
    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as exc:
        position = f"{display}:{exc.lineno or 0}:{exc.offset or 0}"
        raise SourceLoadError(
            f"cannot parse source: {exc.msg}", position=position, env={"stage": "parse"}
        ) from exc
    return ParsedModule(
        path=path,
        module=module_name(path),
        display_path=display,
        tree=tree,
        is_package=path.name == "__init__.py",
    )


def parse_modules(
    paths: Sequence[Path], *, root: Path | None = None, jobs: int = 1
) -> list[ParsedModule]:
    if jobs <= 1 or len(paths) <= 1:
        return [parse_module(path, root=root) for path in paths]
    # map() yields in submission order, so the merged result matches a serial run.
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        return list(executor.map(lambda path: parse_module(path, root=root), paths))


def build_symbol_table(modules: Iterable[ParsedModule]) -> SymbolTable:
    table = SymbolTable()
    parsed = list(modules)
    for unit in parsed:
        table.modules.add(unit.module)
        if unit.is_package:
            table.packages.add(unit.module)
    for unit in parsed:
        ImportVisitor(unit.module, table).visit(unit.tree)
        ConstantVisitor(unit.module, table).visit(unit.tree)
    return table


def is_lock_call(
    call: ast.Call,
    *,
    module: str,
    table: SymbolTable,
    lock_functions: Sequence[str],
) -> bool:
    raw = dotted_name(call.func)
    if raw is None:
        return False
    candidates = {raw}
    expanded = table.expand(module, raw)
    if expanded is not None:
        candidates.add(expanded)
    for name in candidates:
        for lock_function in lock_functions:
            if name == lock_function or name.endswith(f".{lock_function}"):
                return True
    return False


def resource_argument(call: ast.Call, *, config: AnalysisConfig, position: str) -> ast.AST:
    if len(call.args) > config.resource_arg:
        return call.args[config.resource_arg]
    for keyword in call.keywords:
        if keyword.arg == config.resource_keyword:
            return keyword.value
    raise UnsupportedArgumentError(
        "lock call has no resource-type argument",
        position=position,
        env={"resource_arg": config.resource_arg, "resource_keyword": config.resource_keyword},
    )


def resolve_resource_type(
    node: ast.AST,
    *,
    module: str,
    scopes: ScopeChain,
    table: SymbolTable,
    position: str,
) -> str | None:
    """Resolve a resource-type argument to its string value.

    Returns ``None`` when a symbolic reference cannot be resolved. Raises
    ``UnsupportedArgumentError`` for any shape other than a string literal,
    a name or an attribute reference.
    """
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    if isinstance(node, ast.Name):
        return table.resolve_name(module, scopes, node.id)
    if isinstance(node, ast.Attribute):
        dotted = dotted_name(node)
        if dotted is None:
            return None
        return table.resolve_attribute(module, dotted)
    raise UnsupportedArgumentError(
        f"unhandled type of resource type being locked: {type(node).__name__}",
        position=position,
        env={"node": type(node).__name__},
    )


def scan_module(
    unit: ParsedModule,
    *,
    table: SymbolTable,
    config: AnalysisConfig,
) -> ModuleLockScan:
    events: list[LockEvent] = []
    dropped: list[DroppedLockSite] = []

    def _on_lock_call(
        call: ast.Call,
        enclosing: ast.FunctionDef | ast.AsyncFunctionDef | None,
        scopes: ScopeChain,
    ) -> None:
        position = render_position(unit.display_path, call)
        argument = resource_argument(call, config=config, position=position)
        resource_type = resolve_resource_type(
            argument,
            module=unit.module,
            scopes=scopes,
            table=table,
            position=position,
        )
        if resource_type is None:
            reason = f"cannot resolve resource type {ast.unparse(argument)!r}"
            logger.warning("%s: %s; lock site dropped", position, reason)
            dropped.append(DroppedLockSite(position=position, reason=reason))
            return
        if enclosing is None:
            never(
                "failed to find the enclosing function declaration",
                error_type=MissingScopeError,
                position=position,
                module=unit.module,
            )
        events.append(
            LockEvent(
                resource_type=resource_type,
                scope_key=render_position(unit.display_path, enclosing),
                position=position,
            )
        )

    visitor = LockCallVisitor(
        is_lock_call=lambda call: is_lock_call(
            call,
            module=unit.module,
            table=table,
            lock_functions=config.lock_functions,
        ),
        on_lock_call=_on_lock_call,
    )
    visitor.visit(unit.tree)
    logger.debug("%s: %d lock site(s)", unit.display_path, len(events))
    return ModuleLockScan(module=unit, events=tuple(events), dropped=tuple(dropped))


def collect_lock_sites(
    paths: Iterable[str | Path], *, config: AnalysisConfig
) -> LockSiteDiscovery:
    files = iter_python_paths(paths, config=config)
    modules = parse_modules(files, root=config.project_root, jobs=config.jobs)
    table = build_symbol_table(modules)
    scans = [scan_module(unit, table=table, config=config) for unit in modules]
    logger.debug("scanned %d file(s)", len(files))
    return LockSiteDiscovery(files=tuple(files), scans=tuple(scans))


def discover_lock_events(
    paths: Iterable[str | Path], *, config: AnalysisConfig
) -> Iterator[LockEvent]:
    """Yield lock events lazily, one module at a time."""
    files = iter_python_paths(paths, config=config)
    modules = parse_modules(files, root=config.project_root, jobs=config.jobs)
    table = build_symbol_table(modules)
    for unit in modules:
        yield from scan_module(unit, table=table, config=config).events
