"""Message container for problems found while loading and validating models.

Bulk operations (reading a store, resolving references, validating) do not
stop at the first problem. They record it here and carry on; the manager
turns a non-empty container into a :class:`~bprepo.errors.ModelValidationError`
at the end of a reset.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Msg:
    """A single recorded problem."""

    level: int
    source: Optional[str]
    text: str

    def format(self) -> str:
        if self.source:
            return f"{self.source}: {self.text}"
        return self.text


class MsgContainer:
    """Thread-safe, append-only collection of :class:`Msg` records."""

    def __init__(self) -> None:
        self._msgs: list[Msg] = []
        self._lock = threading.Lock()

    def add(
        self,
        source: Any,
        text: str,
        *args: Any,
        level: int = logging.ERROR,
        exc: Optional[BaseException] = None,
    ) -> Msg:
        """Record a message.

        *source* is the object the message is about (a model, an item or a
        plain string); its qualifier is used when it has one. *args* are
        ``%``-interpolated into *text* the way ``logging`` does it.
        """
        if args:
            text = text % args
        if exc is not None:
            text = f"{text} ({exc})"
        msg = Msg(level=level, source=_describe(source), text=text)
        with self._lock:
            self._msgs.append(msg)
        logger.log(level, "%s", msg.format())
        return msg

    def clear(self) -> None:
        with self._lock:
            self._msgs.clear()

    def is_empty(self) -> bool:
        return not self._msgs

    def __len__(self) -> int:
        return len(self._msgs)

    def __iter__(self) -> Iterator[Msg]:
        with self._lock:
            return iter(list(self._msgs))

    def lines(self, min_level: int = logging.DEBUG) -> list[str]:
        return [m.format() for m in self if m.level >= min_level]

    def format(self) -> str:
        return "\n".join(self.lines())


def _describe(source: Any) -> Optional[str]:
    if source is None:
        return None
    if isinstance(source, str):
        return source
    qualifier = getattr(source, "qualifier", None)
    if qualifier is not None:
        return str(qualifier)
    return repr(source)
