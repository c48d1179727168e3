"""Self-expiring UI timers: typing indicator and header auto-hide.

// [LAW:single-enforcer] Each timer handle lives in session state and is armed,
//   cancelled and cleared only by its owner here.

Both owners check-and-clear the handle in the same step they cancel it, so a
superseded timer can never fire into newer state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from discord_term.core.errors import UsageError

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules callbacks on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class TypingIndicator:
    """Idle (no timer) ↔ active (one timer pending)."""

    def __init__(self, state, transport, scheduler: Scheduler, timeout: float = 10.0):
        self._state = state
        self._transport = transport
        self._scheduler = scheduler
        self.timeout = timeout

    @property
    def active(self) -> bool:
        return self._state.get().typing_timer is not None

    def start(self) -> bool:
        state = self._state.get()
        if state.muted or state.active_channel is None or state.typing_timer is not None:
            return False

        self._transport.start_typing(state.active_channel)
        self._state.update(typing_timer=self._scheduler.call_later(self.timeout, self.stop))
        return True

    def stop(self) -> bool:
        state = self._state.get()
        handle = state.typing_timer
        if handle is None:
            return False

        handle.cancel()
        self._state.update(typing_timer=None)
        if state.active_channel is not None:
            self._transport.stop_typing(state.active_channel)
        return True


class HeaderNotifier:
    """Dismissible ``[!]`` banner above the message pane."""

    def __init__(self, state, surface, scheduler: Scheduler, ms_per_char: int = 100):
        self._state = state
        self._surface = surface
        self._scheduler = scheduler
        self.ms_per_char = ms_per_char

    def _cancel_auto_hide(self) -> None:
        handle = self._state.get().header_auto_hide_timer
        if handle is not None:
            handle.cancel()
            self._state.update(header_auto_hide_timer=None)

    def show(self, text: str, auto_hide: bool = False) -> bool:
        if not text:
            raise UsageError("Expecting header text")

        self._surface.set_header_text(f"[!] {text}")
        if not self._surface.header_visible:
            self._surface.show_header()

        # A newer banner owns the header; an older auto-hide must not hide it.
        self._cancel_auto_hide()
        if auto_hide:
            delay = len(text) * self.ms_per_char / 1000.0
            self._state.update(
                header_auto_hide_timer=self._scheduler.call_later(delay, self._auto_hide)
            )

        self._surface.refresh_display()
        return True

    def _auto_hide(self) -> None:
        # The firing handle is already spent; drop it before hiding.
        self._state.update(header_auto_hide_timer=None)
        self.hide()

    def hide(self) -> bool:
        if not self._surface.header_visible:
            return False

        self._cancel_auto_hide()
        self._surface.hide_header()
        self._surface.refresh_display()
        return True
