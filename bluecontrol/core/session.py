"""Device session: lifecycle of one BLE link plus the GET/SET command protocol."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Protocol

from bluecontrol.core.errors import (
    BluecontrolError,
    DescriptorMissingError,
    LinkFailureError,
    LinkLostError,
    PermissionDeniedError,
    ProtocolValidationError,
    SessionTimeoutError,
    WriteCharacteristicMissingError,
    WriteFailedError,
)
from bluecontrol.core.model import (
    ALL_PARAMETERS,
    CharacteristicInfo,
    CommandResult,
    Dialect,
    ParameterName,
    ParameterValue,
    PeripheralHandle,
    RoleKind,
    SessionConfig,
    SessionSnapshot,
    SessionState,
    ValueStatus,
)
from bluecontrol.core.protocol import (
    classify,
    decode_notification,
    encode_get,
    encode_set,
    resolve_parameter,
    validate_raw,
)
from bluecontrol.core.state import Listener, StateStore
from bluecontrol.transports.base import BLEBackend, Link

LOGGER = logging.getLogger(__name__)

ADDRESS_KEY = "last_device_address"

PermissionCheck = Callable[[str], bool]
MessageSink = Callable[[str], None]

_DISCOVER = "discover"
_AUTO_GET = "auto_get"
_RECONNECT = "reconnect"


class AddressSink(Protocol):
    def save(self, key: str, value: str) -> None:
        ...


def allow_all(_capability: str) -> bool:
    return True


@dataclass(frozen=True)
class _Request:
    action: str
    args: tuple[Any, ...]
    future: asyncio.Future[CommandResult]


@dataclass(frozen=True)
class _DeviceFound:
    handle: PeripheralHandle


@dataclass(frozen=True)
class _LinkEstablished:
    generation: int
    handle: PeripheralHandle
    link: Link


@dataclass(frozen=True)
class _LinkFailed:
    generation: int
    handle: PeripheralHandle
    error: LinkFailureError


@dataclass(frozen=True)
class _LinkLost:
    generation: int
    handle: PeripheralHandle


@dataclass(frozen=True)
class _TimerFired:
    name: str
    generation: int


@dataclass(frozen=True)
class _Notification:
    generation: int
    uuid: str
    data: bytes


@dataclass(frozen=True)
class _WriteCompleted:
    payload: str
    parameter: ParameterName | None
    previous: ParameterValue | None
    pending: ParameterValue | None
    error: WriteFailedError | None


class DeviceSession:
    """Owns one BLE link and the text protocol spoken over it.

    Every platform callback and every caller command is turned into a message
    on a single mailbox. One pump task drains it, so all state transitions
    happen in one place regardless of which thread the backend calls back on.
    Commands never raise; failures come back in ``CommandResult.error`` and
    in ``snapshot.last_error``.
    """

    def __init__(
        self,
        backend: BLEBackend,
        dialect: Dialect,
        *,
        config: SessionConfig | None = None,
        permission: PermissionCheck | None = None,
        address_store: AddressSink | None = None,
        message_sink: MessageSink | None = None,
    ) -> None:
        self._backend = backend
        self._dialect = dialect
        self._config = config or SessionConfig()
        self._permission = permission or allow_all
        self._address_store = address_store
        self._message_sink = message_sink
        self._store = StateStore()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._mailbox: asyncio.Queue[Any] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closers: set[asyncio.Task[Any]] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}

        self._generation = 0
        self._link: Link | None = None
        self._write_uuid: str | None = None
        self._target: PeripheralHandle | None = None
        self._reconnect_attempts = 0

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._store.snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    def scheduled(self, name: str) -> bool:
        """Report whether a timer ('discover', 'auto_get', 'reconnect') is pending."""
        return name in self._timers

    async def __aenter__(self) -> DeviceSession:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._pump_task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._mailbox = asyncio.Queue()
        self._pump_task = self._loop.create_task(self._pump())

    async def close(self) -> None:
        if self._pump_task is None:
            return
        self._cancel_timers()
        self._generation += 1
        pump, self._pump_task = self._pump_task, None
        pump.cancel()
        with suppress(asyncio.CancelledError):
            await pump

        # Link teardown runs to completion; everything else is abandoned.
        for task in self._tasks - self._closers:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._store.snapshot.scanning:
            await self._stop_backend_scan()
        link, self._link = self._link, None
        self._write_uuid = None
        if link is not None:
            await self._close_link(link)

    async def drain(self) -> None:
        """Wait until the mailbox and every in-flight backend task are idle."""
        if self._mailbox is None:
            return
        while True:
            await self._mailbox.join()
            pending = [task for task in self._tasks if not task.done()]
            if not pending and self._mailbox.empty():
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def wait_for(
        self,
        predicate: Callable[[SessionSnapshot], bool],
        timeout: float,
    ) -> SessionSnapshot:
        if predicate(self._store.snapshot):
            return self._store.snapshot
        reached = asyncio.Event()

        def _check(snapshot: SessionSnapshot) -> None:
            if predicate(snapshot):
                reached.set()

        unsubscribe = self._store.subscribe(_check)
        try:
            await asyncio.wait_for(reached.wait(), timeout)
        except TimeoutError as exc:
            raise SessionTimeoutError(
                f"Session did not reach the expected state within {timeout}s "
                f"(state={self._store.snapshot.state.value})"
            ) from exc
        finally:
            unsubscribe()
        return self._store.snapshot

    # Commands

    async def start_scan(self) -> CommandResult:
        return await self._request("start_scan")

    async def stop_scan(self) -> CommandResult:
        return await self._request("stop_scan")

    async def connect(self, handle: PeripheralHandle) -> CommandResult:
        return await self._request("connect", handle)

    async def disconnect(self) -> CommandResult:
        return await self._request("disconnect")

    async def get_value(self, parameter: str | ParameterName | None = None) -> CommandResult:
        return await self._request("get_value", parameter)

    async def set_value(self, parameter: str | ParameterName, value: str) -> CommandResult:
        return await self._request("set_value", parameter, value)

    async def write_characteristic(self, message: str) -> CommandResult:
        return await self._request("write_characteristic", message)

    # Mailbox plumbing

    async def _request(self, action: str, *args: Any) -> CommandResult:
        if self._loop is None or self._pump_task is None:
            return CommandResult(command=action, error=BluecontrolError("Session is not started"))
        future: asyncio.Future[CommandResult] = self._loop.create_future()
        self._post(_Request(action=action, args=args, future=future))
        return await future

    def _post(self, event: object) -> None:
        loop, mailbox = self._loop, self._mailbox
        if loop is None or mailbox is None or loop.is_closed():
            LOGGER.debug("Dropping %s; session is not running", type(event).__name__)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            mailbox.put_nowait(event)
        else:
            loop.call_soon_threadsafe(mailbox.put_nowait, event)

    async def _pump(self) -> None:
        assert self._mailbox is not None
        while True:
            event = await self._mailbox.get()
            try:
                await self._dispatch(event)
            except Exception:
                LOGGER.exception("Unhandled error while processing %s", type(event).__name__)
            finally:
                self._mailbox.task_done()

    async def _dispatch(self, event: object) -> None:
        if isinstance(event, _Request):
            await self._handle_request(event)
        elif isinstance(event, _DeviceFound):
            self._on_device_found(event)
        elif isinstance(event, _LinkEstablished):
            self._on_link_established(event)
        elif isinstance(event, _LinkFailed):
            self._on_link_failed(event)
        elif isinstance(event, _LinkLost):
            self._on_link_lost(event)
        elif isinstance(event, _TimerFired):
            await self._on_timer(event)
        elif isinstance(event, _Notification):
            self._on_notification(event)
        elif isinstance(event, _WriteCompleted):
            self._on_write_completed(event)
        else:
            LOGGER.warning("Ignoring unknown session event %r", event)

    async def _handle_request(self, request: _Request) -> None:
        handler = getattr(self, f"_do_{request.action}")
        try:
            result = await handler(*request.args)
        except Exception as exc:
            LOGGER.exception("Command %s failed unexpectedly", request.action)
            error = exc if isinstance(exc, BluecontrolError) else BluecontrolError(str(exc))
            result = self._fail(request.action, error)
        if not request.future.done():
            request.future.set_result(result)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        assert self._loop is not None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _release(self, link: Link) -> None:
        task = self._spawn(self._close_link(link))
        self._closers.add(task)
        task.add_done_callback(self._closers.discard)

    def _schedule(self, name: str, delay: float, generation: int) -> None:
        assert self._loop is not None
        existing = self._timers.pop(name, None)
        if existing is not None:
            existing.cancel()
        self._timers[name] = self._loop.call_later(delay, self._fire_timer, name, generation)

    def _fire_timer(self, name: str, generation: int) -> None:
        self._timers.pop(name, None)
        self._post(_TimerFired(name=name, generation=generation))

    def _cancel_timers(self, *names: str) -> None:
        for name in names or tuple(self._timers):
            timer = self._timers.pop(name, None)
            if timer is not None:
                timer.cancel()

    def _fail(self, command: str, error: BluecontrolError) -> CommandResult:
        LOGGER.warning("%s failed: %s", command, error)
        self._store.update(last_error=error)
        return CommandResult(command=command, error=error)

    def _permitted(self, capability: str) -> bool:
        return bool(self._permission(capability))

    # Scan

    async def _do_start_scan(self) -> CommandResult:
        if not self._permitted("scan"):
            return self._fail("start_scan", PermissionDeniedError("Scan permission not granted"))
        try:
            await self._backend.start_scan(lambda handle: self._post(_DeviceFound(handle)))
        except Exception as exc:
            return self._fail("start_scan", LinkFailureError(f"Scan failed to start: {exc}"))

        changes: dict[str, Any] = {"scanning": True}
        if self._store.snapshot.state in (SessionState.IDLE, SessionState.DISCONNECTED):
            changes["state"] = SessionState.SCANNING
        self._store.update(**changes)
        LOGGER.info("Scanning for peripherals")
        return CommandResult(command="start_scan")

    async def _do_stop_scan(self) -> CommandResult:
        snapshot = self._store.snapshot
        if snapshot.scanning:
            await self._stop_backend_scan()
        changes: dict[str, Any] = {"scanning": False}
        if snapshot.state is SessionState.SCANNING:
            changes["state"] = SessionState.IDLE
        self._store.update(**changes)
        return CommandResult(command="stop_scan")

    async def _stop_backend_scan(self) -> None:
        try:
            await self._backend.stop_scan()
        except Exception as exc:
            LOGGER.warning("Stopping scan failed: %s", exc)

    def _on_device_found(self, event: _DeviceFound) -> None:
        if not self._store.snapshot.scanning:
            return
        if self._store.add_device(event.handle):
            LOGGER.debug("Discovered %s", event.handle.label)

    # Link lifecycle

    async def _do_connect(self, handle: PeripheralHandle) -> CommandResult:
        if not self._permitted("connect"):
            return self._fail("connect", PermissionDeniedError("Connect permission not granted"))
        self._cancel_timers()
        self._reconnect_attempts = 0
        self._store.update(reconnect_attempts=0)
        self._open(handle)
        return CommandResult(command="connect", payload=handle.address)

    def _open(self, handle: PeripheralHandle) -> None:
        self._generation += 1
        generation = self._generation
        link, self._link = self._link, None
        self._write_uuid = None
        if link is not None:
            self._release(link)
        self._target = handle
        self._store.update(
            state=SessionState.CONNECTING,
            connected_device=handle,
            write_bound=False,
            subscribed=(),
        )
        LOGGER.info("Connecting to %s", handle.label)
        self._spawn(self._establish(generation, handle))

    async def _establish(self, generation: int, handle: PeripheralHandle) -> None:
        def _on_lost() -> None:
            self._post(_LinkLost(generation=generation, handle=handle))

        try:
            link = await self._backend.connect(
                handle.address,
                on_lost=_on_lost,
                timeout_s=self._config.connect_timeout_s,
            )
        except Exception as exc:
            error = exc if isinstance(exc, LinkFailureError) else LinkFailureError(
                f"Connect to {handle.address} failed: {exc}"
            )
            self._post(_LinkFailed(generation=generation, handle=handle, error=error))
            return
        self._post(_LinkEstablished(generation=generation, handle=handle, link=link))

    async def _close_link(self, link: Link) -> None:
        try:
            await link.close()
        except Exception as exc:
            LOGGER.debug("Closing link to %s failed: %s", getattr(link, "address", "?"), exc)

    def _on_link_established(self, event: _LinkEstablished) -> None:
        if event.generation != self._generation:
            LOGGER.debug("Closing superseded link to %s", event.handle.address)
            self._release(event.link)
            return
        LOGGER.info("Connected to %s", event.handle.label)
        self._link = event.link
        self._reconnect_attempts = 0
        self._store.update(
            state=SessionState.SERVICE_DISCOVERY,
            connected_device=event.handle,
            manual_disconnect=False,
            reconnect_attempts=0,
            last_error=None,
        )
        self._save_address(event.handle)
        self._schedule(_DISCOVER, self._config.settle_delay_s, event.generation)

    def _save_address(self, handle: PeripheralHandle) -> None:
        if self._address_store is None:
            return
        try:
            self._address_store.save(ADDRESS_KEY, handle.address)
        except Exception as exc:
            LOGGER.warning("Could not persist device address %s: %s", handle.address, exc)

    def _on_link_failed(self, event: _LinkFailed) -> None:
        if event.generation != self._generation:
            return
        LOGGER.error("%s", event.error)
        self._link = None
        self._write_uuid = None
        self._store.update(
            state=SessionState.DISCONNECTED,
            connected_device=None,
            write_bound=False,
            subscribed=(),
            last_error=event.error,
        )
        if self._reconnect_attempts > 0 and not self._store.snapshot.manual_disconnect:
            self._schedule_reconnect()

    def _on_link_lost(self, event: _LinkLost) -> None:
        if event.generation != self._generation or self._store.snapshot.state is SessionState.DISCONNECTED:
            return
        LOGGER.info("Disconnected from %s", event.handle.label)
        link, self._link = self._link, None
        self._write_uuid = None
        if link is not None:
            self._release(link)
        elif self._store.snapshot.state is SessionState.CONNECTING:
            # Lost before the link was handed over; the late handover is stale.
            self._generation += 1
        self._cancel_timers(_DISCOVER, _AUTO_GET)

        changes: dict[str, Any] = {
            "state": SessionState.DISCONNECTED,
            "connected_device": None,
            "write_bound": False,
            "subscribed": (),
        }
        manual = self._store.snapshot.manual_disconnect
        if not manual:
            changes["last_error"] = LinkLostError(f"Link to {event.handle.address} lost")
        self._store.update(**changes)
        if not manual:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        limit = self._config.reconnect_max_attempts
        if limit is not None and self._reconnect_attempts >= limit:
            LOGGER.warning(
                "Giving up on %s after %d reconnect attempt(s)",
                self._target.address if self._target else "?",
                self._reconnect_attempts,
            )
            return
        delay = self._config.reconnect_delay_s * (
            self._config.reconnect_backoff ** self._reconnect_attempts
        )
        LOGGER.debug("Reconnect scheduled in %.2fs", delay)
        self._schedule(_RECONNECT, delay, self._generation)

    async def _do_disconnect(self) -> CommandResult:
        if not self._permitted("connect"):
            return self._fail("disconnect", PermissionDeniedError("Connect permission not granted"))
        snapshot = self._store.snapshot
        active = (
            self._link is not None
            or snapshot.state in (SessionState.CONNECTING, SessionState.SERVICE_DISCOVERY)
            or self.scheduled(_RECONNECT)
        )
        if not active:
            LOGGER.debug("disconnect() without a link; nothing to do")
            return CommandResult(command="disconnect")

        self._cancel_timers()
        self._generation += 1
        link, self._link = self._link, None
        self._write_uuid = None
        if link is not None:
            self._release(link)
        address = self._target.address if self._target else None
        self._store.update(
            state=SessionState.DISCONNECTED,
            connected_device=None,
            manual_disconnect=True,
            write_bound=False,
            subscribed=(),
        )
        LOGGER.info("Disconnect requested for %s", address)
        return CommandResult(command="disconnect", payload=address)

    async def _on_timer(self, event: _TimerFired) -> None:
        if event.generation != self._generation:
            return
        if event.name == _DISCOVER:
            await self._discover(event.generation)
        elif event.name == _AUTO_GET:
            await self._do_get_value(None)
        elif event.name == _RECONNECT:
            snapshot = self._store.snapshot
            if (
                snapshot.manual_disconnect
                or snapshot.state is not SessionState.DISCONNECTED
                or self._target is None
            ):
                return
            if not self._permitted("connect"):
                self._fail("reconnect", PermissionDeniedError("Connect permission not granted"))
                return
            self._reconnect_attempts += 1
            self._store.update(reconnect_attempts=self._reconnect_attempts)
            LOGGER.info(
                "Reconnecting to %s (attempt %d)", self._target.address, self._reconnect_attempts
            )
            self._open(self._target)

    # Service discovery and notifications

    async def _discover(self, generation: int) -> None:
        link = self._link
        if link is None:
            return
        if not self._permitted("connect"):
            self._abandon(link, PermissionDeniedError("Connect permission not granted"))
            return
        try:
            characteristics = await link.discover()
        except Exception as exc:
            self._abandon(link, LinkFailureError(f"Service discovery failed: {exc}"))
            return

        write_uuid: str | None = None
        subscribed: list[ParameterName] = []
        for char in characteristics:
            role = classify(self._dialect, char.uuid)
            if role.kind is RoleKind.WRITE:
                if write_uuid is None:
                    LOGGER.debug("Found write characteristic %s", char.uuid)
                    write_uuid = char.uuid
                else:
                    LOGGER.warning("Ignoring duplicate write characteristic %s", char.uuid)
            elif role.kind is RoleKind.READ and role.parameter is not None:
                if role.parameter in subscribed:
                    continue
                LOGGER.debug("Found %s read characteristic %s", role.parameter.value, char.uuid)
                if await self._enable_notifications(link, char, role.parameter, generation):
                    subscribed.append(role.parameter)

        if generation != self._generation:
            return
        self._write_uuid = write_uuid
        if write_uuid is None:
            LOGGER.warning("No write characteristic found; commands will be rejected")
        self._store.update(
            state=SessionState.READY,
            write_bound=write_uuid is not None,
            subscribed=tuple(subscribed),
        )
        if write_uuid is not None and self._dialect.auto_get_delay_s is not None:
            self._schedule(_AUTO_GET, self._dialect.auto_get_delay_s, generation)

    def _abandon(self, link: Link, error: BluecontrolError) -> None:
        """Drop a link that cannot be brought to Ready, without reconnecting."""
        LOGGER.error("%s", error)
        self._generation += 1
        self._link = None
        self._write_uuid = None
        self._release(link)
        self._store.update(
            state=SessionState.DISCONNECTED,
            connected_device=None,
            write_bound=False,
            subscribed=(),
            last_error=error,
        )

    async def _enable_notifications(
        self,
        link: Link,
        char: CharacteristicInfo,
        parameter: ParameterName,
        generation: int,
    ) -> bool:
        if self._dialect.descriptor_uuid not in char.descriptors:
            error = DescriptorMissingError(
                f"Characteristic {char.uuid} ({parameter.value}) has no notification descriptor"
            )
            LOGGER.error("%s", error)
            self._store.update(last_error=error)
            return False

        def _handler(uuid: str, data: bytes) -> None:
            self._post(_Notification(generation=generation, uuid=uuid, data=data))

        try:
            await link.start_notify(char.uuid, _handler)
        except Exception as exc:
            error = LinkFailureError(f"Enabling notifications on {char.uuid} failed: {exc}")
            LOGGER.error("%s", error)
            self._store.update(last_error=error)
            return False
        return True

    def _on_notification(self, event: _Notification) -> None:
        if event.generation != self._generation:
            return
        role = classify(self._dialect, event.uuid)
        if role.kind is not RoleKind.READ or role.parameter is None:
            LOGGER.debug("Notification on unmapped characteristic %s", event.uuid)
            return
        message, value = decode_notification(self._dialect, event.data)
        LOGGER.debug("Received %s: %s", role.parameter.value, message)

        changes: dict[str, Any] = {"last_message": message}
        if value is not None:
            values = dict(self._store.snapshot.values)
            values[role.parameter] = ParameterValue(value=value, status=ValueStatus.CONFIRMED)
            changes["values"] = values
        self._store.update(**changes)
        self._emit(message)

    def _emit(self, message: str) -> None:
        if self._message_sink is None:
            return
        try:
            self._message_sink(message)
        except Exception:
            LOGGER.exception("Message sink failed")

    # Writes

    async def _do_get_value(self, parameter: str | ParameterName | None) -> CommandResult:
        try:
            resolved = resolve_parameter(self._dialect, parameter or self._dialect.parameters[0])
        except ProtocolValidationError as exc:
            return self._fail("get_value", exc)
        return self._send("get_value", encode_get(self._dialect, resolved))

    async def _do_set_value(self, parameter: str | ParameterName, value: str) -> CommandResult:
        if isinstance(parameter, str) and parameter.lower() == ALL_PARAMETERS:
            LOGGER.warning("'%s' has no aggregate wire message; nothing sent", ALL_PARAMETERS)
            return CommandResult(command="set_value")
        try:
            resolved = resolve_parameter(self._dialect, parameter)
            payload = encode_set(self._dialect, resolved, value)
        except ProtocolValidationError as exc:
            return self._fail("set_value", exc)

        blocker = self._write_blocker()
        if blocker is not None:
            return self._fail("set_value", blocker)

        values = dict(self._store.snapshot.values)
        previous = values.get(resolved)
        pending = ParameterValue(value=value.strip(), status=ValueStatus.PENDING)
        values[resolved] = pending
        self._store.update(values=values)
        return self._send("set_value", payload, parameter=resolved, previous=previous, pending=pending)

    async def _do_write_characteristic(self, message: str) -> CommandResult:
        try:
            payload = validate_raw(self._dialect, message)
        except ProtocolValidationError as exc:
            return self._fail("write_characteristic", exc)
        return self._send("write_characteristic", payload)

    def _write_blocker(self) -> BluecontrolError | None:
        if not self._permitted("connect"):
            return PermissionDeniedError("Connect permission not granted")
        if self._link is None or self._write_uuid is None:
            return WriteCharacteristicMissingError("Write characteristic not found")
        return None

    def _send(
        self,
        command: str,
        payload: str,
        *,
        parameter: ParameterName | None = None,
        previous: ParameterValue | None = None,
        pending: ParameterValue | None = None,
    ) -> CommandResult:
        blocker = self._write_blocker()
        if blocker is not None:
            return self._fail(command, blocker)
        assert self._link is not None and self._write_uuid is not None
        self._spawn(
            self._write(self._link, self._write_uuid, payload, parameter, previous, pending)
        )
        LOGGER.debug("Write attempt: %s", payload)
        return CommandResult(command=command, payload=payload)

    async def _write(
        self,
        link: Link,
        uuid: str,
        payload: str,
        parameter: ParameterName | None,
        previous: ParameterValue | None,
        pending: ParameterValue | None,
    ) -> None:
        error: WriteFailedError | None = None
        try:
            await link.write(uuid, payload.encode("utf-8"), response=self._config.write_with_response)
        except Exception as exc:
            error = exc if isinstance(exc, WriteFailedError) else WriteFailedError(
                f"Write of '{payload}' failed: {exc}"
            )
        self._post(
            _WriteCompleted(
                payload=payload,
                parameter=parameter,
                previous=previous,
                pending=pending,
                error=error,
            )
        )

    def _on_write_completed(self, event: _WriteCompleted) -> None:
        if event.error is None:
            LOGGER.debug("Write successful: %s", event.payload)
            return
        LOGGER.error("%s", event.error)
        changes: dict[str, Any] = {"last_error": event.error}
        if event.parameter is not None:
            values = dict(self._store.snapshot.values)
            if values.get(event.parameter) is event.pending:
                if event.previous is None:
                    values.pop(event.parameter, None)
                else:
                    values[event.parameter] = event.previous
                changes["values"] = values
        self._store.update(**changes)
