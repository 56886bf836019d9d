from __future__ import annotations

"""Extension hook dispatcher.

The dispatcher owns the declared hook points and the handlers attached to
them. Its lifecycle has two phases:

1. **Wiring**: ``declare`` and ``register`` calls during startup.
2. **Serving**: ``dispatch`` calls. The first dispatch (or an explicit
   ``seal``) closes wiring; from then on the handler lists are read-only.

Dispatch semantics per composition rule:

- ``first_non_empty``: handlers run in order until one returns a value that is
  neither ``None`` nor an empty container. Later handlers do not run. The
  default behavior supplies the value when no handler does.
- ``concatenate``: every handler runs concurrently and non-``None`` results
  are collected in handler order, after the default behavior's result when a
  default is given. A failure under ``abort`` or ``fallback`` cancels the
  handlers still running.
- ``override``: the first handler returning anything but ``None`` replaces the
  default behavior; otherwise the default runs.
"""

import asyncio
import inspect
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from forkline.core.errors import HookFailure
from forkline.core.logging_config import get_logger

from .models import Composition, FailureMode, HookOutcome, HookPoint, HookRegistration

logger = get_logger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


def is_empty(value: Any) -> bool:
    """``None`` and zero-length containers/strings count as empty."""
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


async def _call(fn: Handler, payload: Any) -> Any:
    result = fn(payload)
    if inspect.isawaitable(result):
        result = await result
    return result


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)


class HookDispatcher:
    """Ordered invocation of fork handlers at declared hook points.

    Usage:
        dispatcher = HookDispatcher()
        dispatcher.declare(HookPoint("delivery.inspect", Composition.concatenate))
        dispatcher.register("delivery.inspect", handler, order=10)
        dispatcher.seal()
        outcome = await dispatcher.dispatch("delivery.inspect", ctx)
    """

    def __init__(self) -> None:
        self._points: Dict[str, HookPoint] = {}
        self._registrations: Dict[str, List[HookRegistration]] = {}
        self._ordered: Dict[str, Tuple[HookRegistration, ...]] = {}
        self._sealed = False
        self._lock = Lock()

    @property
    def sealed(self) -> bool:
        return self._sealed

    def declare(self, point: HookPoint) -> None:
        """Declare a hook point.

        Declaring the identical point twice is a no-op.

        Raises:
            RuntimeError: If wiring is closed.
            ValueError: If a different point with the same name exists.
        """
        with self._lock:
            self._ensure_open()
            existing = self._points.get(point.name)
            if existing is not None:
                if existing != point:
                    raise ValueError(f"Hook point '{point.name}' is already declared with a different contract")
                return
            self._points[point.name] = point
            self._registrations[point.name] = []
        logger.debug(
            f"Declared hook point {point.name}: composition={point.composition.value}, "
            f"failure_mode={point.failure_mode.value}"
        )

    def register(
        self,
        point_name: str,
        handler: Handler,
        *,
        order: int,
        name: Optional[str] = None,
    ) -> HookRegistration:
        """Attach a handler to a declared hook point.

        Args:
            point_name: Name of a declared hook point.
            handler: Sync or async callable receiving the dispatch payload.
            order: Explicit ordering key; lower runs first.
            name: Identity used in failures and diagnostics.

        Returns:
            The created registration.

        Raises:
            RuntimeError: If wiring is closed.
            ValueError: If the point is undeclared, or the order key or name is
                already taken on that point.
        """
        registration = HookRegistration(
            point=point_name,
            name=name or _handler_name(handler),
            order=int(order),
            handler=handler,
        )
        with self._lock:
            self._ensure_open()
            if point_name not in self._points:
                raise ValueError(f"Hook point '{point_name}' is not declared")
            for other in self._registrations[point_name]:
                if other.order == registration.order:
                    raise ValueError(
                        f"Order key {registration.order} on hook point '{point_name}' is already used by '{other.name}'"
                    )
                if other.name == registration.name:
                    raise ValueError(f"Handler '{registration.name}' is already registered on '{point_name}'")
            self._registrations[point_name].append(registration)
        logger.debug(f"Registered handler {registration.name} on {point_name} (order={registration.order})")
        return registration

    def seal(self) -> None:
        """Close wiring and freeze the handler order of every point."""
        with self._lock:
            if self._sealed:
                return
            self._ordered = {
                name: tuple(sorted(regs, key=lambda r: r.sort_key)) for name, regs in self._registrations.items()
            }
            self._sealed = True
        logger.info(
            "Hook dispatcher sealed: "
            + ", ".join(f"{name}={len(regs)}" for name, regs in sorted(self._ordered.items()))
        )

    def _ensure_open(self) -> None:
        if self._sealed:
            raise RuntimeError("Hook wiring is closed; handlers cannot change once dispatch has begun")

    def points(self) -> Tuple[HookPoint, ...]:
        return tuple(self._points[name] for name in sorted(self._points))

    def point(self, name: str) -> HookPoint:
        try:
            return self._points[name]
        except KeyError:
            raise ValueError(f"Hook point '{name}' is not declared") from None

    def registrations(self, point_name: str) -> Tuple[HookRegistration, ...]:
        """Handlers of a point in dispatch order."""
        self.point(point_name)
        if self._sealed:
            return self._ordered[point_name]
        return tuple(sorted(self._registrations[point_name], key=lambda r: r.sort_key))

    async def dispatch(
        self,
        point_name: str,
        payload: Any,
        *,
        default: Optional[Handler] = None,
    ) -> HookOutcome:
        """Run the handlers of a hook point.

        Args:
            point_name: Name of a declared hook point.
            payload: Input passed unchanged to every handler and to ``default``.
            default: The default (upstream) behavior, if the point has one.

        Returns:
            HookOutcome combining the handler results.

        Raises:
            ValueError: If the point is undeclared.
            HookFailure: Under ``abort``, or under ``fallback`` with no default.
        """
        point = self.point(point_name)
        if not self._sealed:
            self.seal()
        registrations = self._ordered[point_name]

        if point.composition is Composition.concatenate:
            return await self._dispatch_concatenate(point, registrations, payload, default)
        return await self._dispatch_first(point, registrations, payload, default)

    async def _dispatch_concatenate(
        self,
        point: HookPoint,
        registrations: Tuple[HookRegistration, ...],
        payload: Any,
        default: Optional[Handler],
    ) -> HookOutcome:
        values: List[Any] = []
        handled: List[str] = []
        failures: List[HookFailure] = []
        used_default = False

        if default is not None:
            result = await _call(default, payload)
            used_default = True
            if result is not None:
                values.append(result)
        default_values = tuple(values)

        tasks = await self._run_all(point, registrations, payload)
        for reg, task in zip(registrations, tasks):
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                failure = self._failure(point, reg, exc)
                if point.failure_mode is FailureMode.fallback:
                    if not used_default:
                        raise failure from exc
                    logger.info(f"Hook point {point.name} fell back to default behavior after {reg.name} failed")
                    return HookOutcome(
                        point=point.name,
                        value=default_values,
                        failures=(failure,),
                        used_default=True,
                    )
                failures.append(failure)
                continue
            result = task.result()
            if result is None:
                continue
            values.append(result)
            handled.append(reg.name)

        return HookOutcome(
            point=point.name,
            value=tuple(values),
            failures=tuple(failures),
            handled_by=tuple(handled),
            used_default=used_default,
        )

    async def _run_all(
        self,
        point: HookPoint,
        registrations: Tuple[HookRegistration, ...],
        payload: Any,
    ) -> List[asyncio.Task]:
        """Run every handler concurrently and wait for them.

        Under ``abort`` and ``fallback`` the first failure cancels the handlers
        still in flight. Every finished task has its exception retrieved.
        """
        tasks = [asyncio.ensure_future(_call(reg.handler, payload)) for reg in registrations]
        if not tasks:
            return tasks
        return_when = asyncio.ALL_COMPLETED if point.failure_mode is FailureMode.continue_ else asyncio.FIRST_EXCEPTION
        try:
            await asyncio.wait(tasks, return_when=return_when)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        for task in tasks:
            if not task.cancelled():
                task.exception()
        return tasks

    async def _dispatch_first(
        self,
        point: HookPoint,
        registrations: Tuple[HookRegistration, ...],
        payload: Any,
        default: Optional[Handler],
    ) -> HookOutcome:
        failures: List[HookFailure] = []
        accept = (
            (lambda value: not is_empty(value))
            if point.composition is Composition.first_non_empty
            else (lambda value: value is not None)
        )

        for reg in registrations:
            try:
                result = await _call(reg.handler, payload)
            except Exception as exc:
                failure = self._failure(point, reg, exc)
                if point.failure_mode is FailureMode.fallback:
                    if default is None:
                        raise failure from exc
                    logger.info(f"Hook point {point.name} fell back to default behavior after {reg.name} failed")
                    return HookOutcome(
                        point=point.name,
                        value=await _call(default, payload),
                        failures=(failure,),
                        used_default=True,
                    )
                failures.append(failure)
                continue
            if accept(result):
                logger.debug(f"Hook point {point.name} answered by {reg.name}")
                return HookOutcome(
                    point=point.name,
                    value=result,
                    failures=tuple(failures),
                    handled_by=(reg.name,),
                )

        if default is None:
            return HookOutcome(point=point.name, value=None, failures=tuple(failures))
        return HookOutcome(
            point=point.name,
            value=await _call(default, payload),
            failures=tuple(failures),
            used_default=True,
        )

    def _failure(self, point: HookPoint, reg: HookRegistration, exc: Exception) -> HookFailure:
        failure = HookFailure(point.name, reg.name, f"{type(exc).__name__}: {exc}")
        failure.__cause__ = exc
        if point.failure_mode is FailureMode.abort:
            logger.error(str(failure))
            raise failure from exc
        logger.warning(f"{failure} (failure_mode={point.failure_mode.value})")
        return failure
