"""Watch coordination — incremental regeneration from filesystem events.

Each plugin that declares ``watch.paths`` gets one ``Watcher`` running on its
own thread. A watcher consumes a cancellable stream of settled event batches,
drops everything that is not an add/change/unlink of a matching path, and
hands the rest to its handler in delivery order. The ``WatchCoordinator``
turns those events into plugin hook calls and forwards the results to partial
re-emission.
"""

from __future__ import annotations

import os
import signal
import threading
from functools import partial
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol

import watchfiles

from abiforge import logger
from abiforge.globs import matches, watch_roots
from abiforge.models import ADD, CHANGE, UNLINK, ContractConfig, FileEvent
from abiforge.plugins.base import Plugin

# Quiet period before a batch of changes is considered settled.
DEBOUNCE_MS = 300

EventSource = Callable[[list[str], Any], Iterable[Iterable[FileEvent]]]
UpdateCallback = Callable[[str, ContractConfig], None]
RemoveCallback = Callable[[str, str], None]


class Closeable(Protocol):
    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Event sources
# ---------------------------------------------------------------------------


def settle(changes: Iterable[tuple[watchfiles.Change, str]]) -> list[FileEvent]:
    """Collapse one batch of raw changes into a single event per path.

    The final kind is decided from the filesystem as it is now, so a file that
    was written through a temporary file and renamed shows up once.
    """
    seen: dict[str, set[watchfiles.Change]] = {}
    for change, path in changes:
        seen.setdefault(path, set()).add(change)

    events: list[FileEvent] = []
    for path in sorted(seen):
        kinds = seen[path]
        if not os.path.exists(path):
            kind = UNLINK
        elif watchfiles.Change.added in kinds:
            kind = ADD
        else:
            kind = CHANGE
        if kind != UNLINK and os.path.isdir(path):
            kind += "Dir"
        events.append(FileEvent(kind, path))
    return events


def watchfiles_source(roots: list[str], stop_event: Any) -> Iterator[list[FileEvent]]:
    """Yield settled event batches for *roots* until *stop_event* is set.

    Only changes made after the watch starts are reported.
    """
    for changes in watchfiles.watch(*roots, stop_event=stop_event, debounce=DEBOUNCE_MS):
        yield settle(changes)


class _EitherEvent:
    """``is_set()`` view over a watcher's own stop event and its parent's."""

    def __init__(self, own: threading.Event, parent: Optional[threading.Event]) -> None:
        self.own = own
        self.parent = parent

    def is_set(self) -> bool:
        return self.own.is_set() or (self.parent is not None and self.parent.is_set())


# ---------------------------------------------------------------------------
# Process signals
# ---------------------------------------------------------------------------


class ShutdownSignals:
    """Closes registered watchers on SIGINT/SIGTERM, then lets the signal through.

    Handlers are installed at most once, from the main thread, and the
    previous handlers are restored as soon as nothing is registered.
    """

    def __init__(self, signums: Iterable[int] = (signal.SIGINT, signal.SIGTERM)) -> None:
        self.signums = tuple(signums)
        self._registered: list[Closeable] = []
        self._previous: dict[int, Any] = {}
        self._lock = threading.RLock()

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    def install(self) -> None:
        with self._lock:
            if self._previous or threading.current_thread() is not threading.main_thread():
                return
            for signum in self.signums:
                self._previous[signum] = signal.signal(signum, self._handle)

    def uninstall(self) -> None:
        with self._lock:
            # signal.signal() only works on the main thread; a later call or
            # the handler itself restores from there.
            if threading.current_thread() is not threading.main_thread():
                return
            previous, self._previous = self._previous, {}
            for signum, handler in previous.items():
                signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

    def register(self, target: Closeable) -> None:
        with self._lock:
            if any(t is target for t in self._registered):
                return
            self._registered.append(target)

    def unregister(self, target: Closeable) -> None:
        with self._lock:
            self._registered = [t for t in self._registered if t is not target]
            if not self._registered:
                self.uninstall()

    def _handle(self, signum: int, frame: Any) -> None:
        with self._lock:
            targets = list(self._registered)
        for target in targets:
            target.close()
        self.uninstall()
        signal.raise_signal(signum)


shutdown_signals = ShutdownSignals()


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------


class Watcher:
    """Observe files matching *patterns* and pass qualifying events to *handler*."""

    def __init__(
        self,
        patterns: list[str],
        handler: Callable[[FileEvent], None],
        *,
        name: str = "watcher",
        event_source: EventSource | None = None,
        signals: ShutdownSignals | None = None,
        parent: threading.Event | None = None,
    ) -> None:
        self.patterns = list(patterns)
        self.handler = handler
        self.name = name
        self._event_source = event_source or watchfiles_source
        self._signals = signals if signals is not None else shutdown_signals
        self._stop = threading.Event()
        self._stop_view = _EitherEvent(self._stop, parent)
        self._lock = threading.Lock()
        self._closed = False
        self._registered = False

    @property
    def closed(self) -> bool:
        return self._closed

    def roots(self) -> list[str]:
        return [r for r in watch_roots(self.patterns) if os.path.exists(r)]

    def accepts(self, event: FileEvent) -> bool:
        return event.handled and matches(event.path, self.patterns)

    def dispatch(self, event: FileEvent) -> bool:
        """Handle one event; return whether it qualified.

        Handler failures are reported and contained to this event.
        """
        if not self.accepts(event):
            return False
        try:
            self.handler(event)
        except Exception as exc:
            logger.error(f"[{self.name}] {event.kind} {event.path}: {exc}")
        return True

    def run(self) -> None:
        """Consume events until closed. Blocks."""
        roots = self.roots()
        if not roots:
            logger.warn(f"[{self.name}] nothing to watch: {', '.join(self.patterns)}")
            self.close()
            return

        with self._lock:
            if self._closed:
                return
            self._signals.register(self)
            self._registered = True
        self._signals.install()

        stream = self._event_source(roots, self._stop_view)
        try:
            for batch in stream:
                if self._stop_view.is_set():
                    break
                for event in batch:
                    if self._stop_view.is_set():
                        break
                    self.dispatch(event)
        finally:
            close_stream = getattr(stream, "close", None)
            if close_stream is not None:
                close_stream()
            self.close()

    def close(self) -> None:
        """Stop watching. Safe to call any number of times."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registered, self._registered = self._registered, False
        self._stop.set()
        if registered:
            self._signals.unregister(self)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class WatchCoordinator:
    """Run every plugin's watch capability and route results to re-emission."""

    def __init__(
        self,
        plugins: list[Plugin],
        on_update: UpdateCallback,
        on_remove: RemoveCallback,
        *,
        event_source: EventSource | None = None,
        signals: ShutdownSignals | None = None,
    ) -> None:
        self.plugins = [p for p in plugins if p.watch is not None]
        self.on_update = on_update
        self.on_remove = on_remove
        self._event_source = event_source
        self._signals = signals if signals is not None else shutdown_signals
        self._stop = threading.Event()
        self._watchers: list[Watcher] = []
        self._threads: list[threading.Thread] = []
        self._closed = False
        self._lock = threading.Lock()

    @property
    def watchers(self) -> list[Watcher]:
        return list(self._watchers)

    def start(self) -> None:
        self._signals.register(self)
        self._signals.install()
        for plugin in self.plugins:
            spec = plugin.watch
            if spec.command is not None:
                self._spawn(partial(self._run_command, plugin), f"{plugin.name}-command")
            if spec.paths:
                watcher = Watcher(
                    spec.paths,
                    partial(self.handle, plugin),
                    name=plugin.name,
                    event_source=self._event_source,
                    signals=self._signals,
                    parent=self._stop,
                )
                self._watchers.append(watcher)
                self._spawn(partial(self._run_watcher, watcher), f"{plugin.name}-watcher")

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _run_watcher(self, watcher: Watcher) -> None:
        try:
            watcher.run()
        except Exception as exc:
            logger.error(f"[{watcher.name}] watcher stopped: {exc}")

    def _run_command(self, plugin: Plugin) -> None:
        try:
            plugin.watch.command(self._stop)
        except Exception as exc:
            logger.error(f"[{plugin.name}] watch command failed: {exc}")

    def handle(self, plugin: Plugin, event: FileEvent) -> None:
        """Call the plugin hook for *event* and forward the outcome."""
        spec = plugin.watch
        if event.kind == UNLINK:
            name = spec.on_remove(event.path)
            if name:
                self.on_remove(plugin.name, name)
            return

        if event.kind not in (ADD, CHANGE):
            return
        hook = spec.on_add if event.kind == ADD else spec.on_change
        contract = hook(event.path)
        if contract is None or not contract.abi:
            return
        self.on_update(plugin.name, contract)

    def wait(self, poll: float = 0.2) -> None:
        """Block until ``close()`` is called (or a shutdown signal arrives)."""
        while not self._stop.wait(poll):
            pass

    def close(self, join_timeout: float = 5.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()
        for watcher in self._watchers:
            watcher.close()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(join_timeout)
        self._signals.unregister(self)
