"""Hooks for observing a running Dis machine, and loading them from files."""
from __future__ import annotations

import importlib.util
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from lexer import DisError


EXTENSION_API_VERSION = 1

# program_start(machine); on_halt(machine, status); program_end(machine, status)
EVENTS = ("program_start", "on_halt", "program_end")


class DisExtensionError(DisError):
    pass


@dataclass(frozen=True)
class StepContext:
    step_index: int
    command: int
    op: Optional[str]
    a: int
    c: int
    d: int


StepHandler = Callable[[Any, StepContext], None]
EventHandler = Callable[..., None]


@dataclass(frozen=True)
class StepRule:
    name: str
    every_n: int
    handler: StepHandler
    ext_name: str


def _empty_buckets() -> Dict[str, List[Tuple[int, EventHandler, str]]]:
    return {event: [] for event in EVENTS}


@dataclass
class HookRegistry:
    # event -> [(priority, handler, ext_name)], highest priority first
    handlers: Dict[str, List[Tuple[int, EventHandler, str]]] = field(default_factory=_empty_buckets)
    step_rules: List[StepRule] = field(default_factory=list)

    def on_event(self, event: str, handler: EventHandler, *, priority: int = 0, ext_name: str = "host") -> None:
        bucket = self.handlers.get(event)
        if bucket is None:
            raise DisExtensionError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")
        bucket.append((priority, handler, ext_name))
        bucket.sort(key=lambda t: t[0], reverse=True)

    def emit(self, event: str, *args: Any) -> None:
        for _priority, handler, _ext in self.handlers.get(event, ()):
            handler(*args)

    def add_step_rule(self, *, name: str, every_n: int, handler: StepHandler, ext_name: str = "host") -> None:
        if every_n <= 0:
            raise DisExtensionError(f"Step rule {name!r} needs every_n >= 1, got {every_n}")
        self.step_rules.append(StepRule(name=name, every_n=every_n, handler=handler, ext_name=ext_name))

    def has_step_rules(self) -> bool:
        return bool(self.step_rules)

    def after_step(self, machine: Any, ctx: StepContext) -> None:
        for rule in self.step_rules:
            if ctx.step_index % rule.every_n == 0:
                rule.handler(machine, ctx)


@dataclass
class RuntimeServices:
    extensions: List[str] = field(default_factory=list)
    hook_registry: HookRegistry = field(default_factory=HookRegistry)


class ExtensionAPI:
    """What an extension's ``dis_register(ext)`` receives."""

    def __init__(self, *, services: RuntimeServices, name: str) -> None:
        self._registry = services.hook_registry
        self.name = name

    def on_event(self, event: str, handler: Optional[EventHandler] = None, *, priority: int = 0):
        if handler is None:
            def deco(fn: EventHandler) -> EventHandler:
                self._registry.on_event(event, fn, priority=priority, ext_name=self.name)
                return fn
            return deco
        self._registry.on_event(event, handler, priority=priority, ext_name=self.name)
        return handler

    def every_n_steps(self, every_n: int, handler: Optional[StepHandler] = None, *, name: str = ""):
        if handler is None:
            def deco(fn: StepHandler) -> StepHandler:
                self._registry.add_step_rule(name=name or fn.__name__, every_n=every_n, handler=fn, ext_name=self.name)
                return fn
            return deco
        self._registry.add_step_rule(name=name or handler.__name__, every_n=every_n, handler=handler, ext_name=self.name)
        return handler


def load_extension(path: str, services: RuntimeServices) -> str:
    """Import the extension at ``path`` and let it register its hooks."""
    if not os.path.isfile(path):
        raise DisExtensionError(f"Extension not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    spec = importlib.util.spec_from_file_location(f"dis_ext_{stem}", path)
    if spec is None or spec.loader is None:
        raise DisExtensionError(f"Not a Python module: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise DisExtensionError(f"Extension {path} failed to import: {exc}") from exc

    api_version = getattr(module, "DIS_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise DisExtensionError(f"Extension {path} requires API {api_version}, host supports {EXTENSION_API_VERSION}")
    register = getattr(module, "dis_register", None)
    if not callable(register):
        raise DisExtensionError(f"Extension {path} must define callable dis_register(ext)")
    name = str(getattr(module, "DIS_EXTENSION_NAME", stem))
    if name in services.extensions:
        raise DisExtensionError(f"Extension {name!r} is already loaded")
    register(ExtensionAPI(services=services, name=name))
    services.extensions.append(name)
    return name


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    services = RuntimeServices()
    for path in paths:
        load_extension(path, services)
    return services
