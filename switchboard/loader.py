"""Handler discovery, validation and registration.

Handlers live in a conventional tree under the handlers directory::

    commands/prefix/<category>/<name>.py   -> module attribute ``command``
    commands/slash/<category>/<name>.py    -> module attribute ``command``
    events/<group>/<name>.py               -> module attribute ``event``

Category directories are listed concurrently and every file inside them
is imported concurrently in a worker thread. A file that cannot be
imported or does not expose a valid descriptor counts as failed and is
skipped; the rest of the batch still loads. Once all imports have
finished, results are folded into the registries in sorted path order,
so when two files claim the same name the later path wins every time.

Slash commands are then submitted to the registrar in one bulk call.
Event handlers are bound to the runtime's EventBus.

``register_all`` runs the same validation and folding over descriptors
supplied in code, for callers that build their handler set explicitly
instead of scanning a directory.
"""

import asyncio
import functools
import importlib.util
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field, ValidationError

from .commands.base import EventHandler, PrefixCommand, SlashCommand
from .exceptions import (
    ConfigurationError,
    FatalLoaderError,
    LoadIOError,
    LoadValidationError,
    RegistrationError,
    SwitchboardError,
)

logger = structlog.get_logger("switchboard.loader")

PREFIX = "prefix"
SLASH = "slash"
EVENT = "event"

_EXPORTS = {PREFIX: "command", SLASH: "command", EVENT: "event"}
_MODELS = {PREFIX: PrefixCommand, SLASH: SlashCommand, EVENT: EventHandler}


class LoadReport(BaseModel):
    """Counts and per-file status rows for one load run."""

    kind: str
    loaded: int = 0
    failed: int = 0
    registered: int = 0
    execution_time_ms: float = 0.0
    error: Optional[str] = None
    rows: List[Tuple[str, str]] = Field(default_factory=list)


@dataclass
class _Unit:
    """One discovered handler file (or code-supplied descriptor)."""
    category: str
    path: Optional[Path]
    descriptor: Any = None
    error: Optional[SwitchboardError] = None

    @property
    def label(self) -> str:
        return self.path.name if self.path else f"{self.category}:<inline>"


def _list_dirs(root: Path) -> List[Path]:
    return sorted(p for p in root.iterdir() if p.is_dir())


def _list_handler_files(category_dir: Path) -> List[Path]:
    return sorted(
        p for p in category_dir.iterdir()
        if p.is_file() and p.suffix == ".py" and not p.name.startswith("_")
    )


def _exec_module(module_name: str, path: Path):
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise LoadIOError("not an importable module", path=str(path))
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


class RegistryLoader:
    """Fills the runtime's registries and event bus from handler modules.

    Args:
        runtime: Runtime whose registries, event bus and registrar
            are populated. The loader is their only writer.
    """

    def __init__(self, runtime):
        self.runtime = runtime

    async def load_all(self, handlers_dir: Optional[Path] = None) -> Dict[str, LoadReport]:
        """Load prefix commands, slash commands and events concurrently."""
        root = handlers_dir or self.runtime.config.handlers_dir
        reports = await asyncio.gather(
            self.load_prefix_commands(root / "commands" / "prefix"),
            self.load_slash_commands(root / "commands" / "slash"),
            self.load_events(root / "events"),
        )
        return {report.kind: report for report in reports}

    async def load_prefix_commands(self, root: Path) -> LoadReport:
        return await self._load(PREFIX, root)

    async def load_slash_commands(self, root: Path) -> LoadReport:
        if not root.is_dir():
            logger.warning("slash_dir_missing", path=str(root), action="created")
            await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
            return LoadReport(kind=SLASH)
        return await self._load(SLASH, root)

    async def load_events(self, root: Path) -> LoadReport:
        return await self._load(EVENT, root)

    async def register_all(
        self, kind: str, providers: Iterable[Tuple[str, Any]]
    ) -> LoadReport:
        """Validate and register code-supplied ``(category, descriptor)`` pairs.

        Descriptors may be model instances or plain dicts.
        """
        report = LoadReport(kind=kind)
        started = time.perf_counter()
        for category, descriptor in providers:
            self._fold(kind, _Unit(category=category, path=None, descriptor=descriptor), report)
        if kind == SLASH:
            await self._register_remote(report)
        report.execution_time_ms = round((time.perf_counter() - started) * 1000, 2)
        self._log_summary(report)
        return report

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _load(self, kind: str, root: Path) -> LoadReport:
        started = time.perf_counter()
        report = LoadReport(kind=kind)
        try:
            units = await self._discover(kind, root, report)
            imported = await asyncio.gather(
                *(self._import_unit(kind, unit) for unit in units)
            )
            for unit in imported:
                self._fold(kind, unit, report)
            if kind == SLASH:
                await self._register_remote(report)
        except Exception as e:
            fatal = FatalLoaderError(
                f"{kind} loader failed: {e}", error_type=type(e).__name__
            )
            logger.error(
                "loader_fatal_error",
                kind=kind,
                root=str(root),
                error=str(fatal),
                exc_info=True,
            )
            return LoadReport(kind=kind, error=str(fatal))

        report.execution_time_ms = round((time.perf_counter() - started) * 1000, 2)
        self._log_summary(report)
        return report

    async def _discover(self, kind: str, root: Path, report: LoadReport) -> List[_Unit]:
        try:
            categories = await asyncio.to_thread(_list_dirs, root)
        except OSError as e:
            raise LoadIOError(f"cannot list {root}: {e}", path=str(root)) from e

        listings = await asyncio.gather(
            *(asyncio.to_thread(_list_handler_files, c) for c in categories),
            return_exceptions=True,
        )

        units: List[_Unit] = []
        for category_dir, files in zip(categories, listings):
            if isinstance(files, BaseException):
                error = LoadIOError(
                    f"cannot read category: {files}", path=str(category_dir)
                )
                logger.error(
                    "category_read_failed",
                    kind=kind,
                    category=category_dir.name,
                    error=str(error),
                )
                report.rows.append((category_dir.name, "unreadable"))
                continue
            units.extend(_Unit(category=category_dir.name, path=f) for f in files)
        return units

    async def _import_unit(self, kind: str, unit: _Unit) -> _Unit:
        module_name = f"switchboard_handlers.{kind}.{unit.category}.{unit.path.stem}"
        try:
            module = await asyncio.to_thread(_exec_module, module_name, unit.path)
        except (Exception, SystemExit) as e:
            unit.error = LoadIOError(
                f"import failed: {e}",
                path=str(unit.path),
                error_type=type(e).__name__,
            )
            return unit
        unit.descriptor = getattr(module, _EXPORTS[kind], None)
        return unit

    def _fold(self, kind: str, unit: _Unit, report: LoadReport) -> None:
        """Validate one unit and write it into its registry."""
        try:
            if unit.error is not None:
                raise unit.error
            descriptor = self._validate(kind, unit)
            self._install(kind, descriptor)
        except (LoadIOError, LoadValidationError) as e:
            report.failed += 1
            report.rows.append((unit.label, "invalid" if isinstance(e, LoadValidationError) else "error"))
            logger.warning(
                "handler_load_failed",
                kind=kind,
                category=unit.category,
                file=unit.label,
                error=str(e),
                error_class=type(e).__name__,
            )
            return
        report.loaded += 1
        report.rows.append((descriptor.name, "ok"))

    def _validate(self, kind: str, unit: _Unit):
        path = str(unit.path) if unit.path else None
        if unit.descriptor is None:
            raise LoadValidationError(
                f"module exposes no `{_EXPORTS[kind]}`", path=path
            )
        model = _MODELS[kind]
        try:
            descriptor = model.model_validate(unit.descriptor)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise LoadValidationError(
                f"invalid {kind} descriptor", path=path, fields=fields
            ) from e
        if kind == EVENT:
            return descriptor.model_copy(update={"path": path})
        return descriptor.model_copy(update={"category": unit.category, "path": path})

    def _install(self, kind: str, descriptor) -> None:
        if kind == PREFIX:
            self.runtime.registry.register(descriptor)
        elif kind == SLASH:
            self.runtime.slash_registry.register(descriptor)
        else:
            listener = functools.partial(descriptor.execute, self.runtime)
            if descriptor.once:
                self.runtime.events.once(descriptor.name, listener)
            else:
                self.runtime.events.on(descriptor.name, listener)

    async def _register_remote(self, report: LoadReport) -> None:
        """Submit every slash command in one call; failures keep the local registry."""
        payloads = self.runtime.slash_registry.payloads()
        if not payloads:
            return
        registrar = self.runtime.registrar
        if registrar is None:
            logger.info("slash_registration_skipped", reason="no registrar", commands=len(payloads))
            return
        try:
            report.registered = await registrar.bulk_register(payloads)
        except ConfigurationError as e:
            logger.error(
                "slash_registration_unconfigured",
                setting=e.setting_name,
                error=str(e),
            )
        except RegistrationError as e:
            logger.error("slash_registration_failed", error=str(e))
        except Exception as e:
            error = RegistrationError(
                f"unexpected registrar failure: {e}", error_type=type(e).__name__
            )
            logger.error("slash_registration_failed", error=str(error), exc_info=True)
        else:
            logger.info("slash_commands_registered", count=report.registered)

    def _log_summary(self, report: LoadReport) -> None:
        for label, status in report.rows:
            logger.debug("handler_status", kind=report.kind, handler=label, status=status)
        logger.info(
            "handlers_loaded",
            kind=report.kind,
            loaded=report.loaded,
            failed=report.failed,
            registered=report.registered,
            execution_time_ms=report.execution_time_ms,
        )
