"""Cross-engine memory migration through a standardized intermediate form."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from agent.exceptions import PartialMemoryTransferFailure

if TYPE_CHECKING:
    from agent.strategies.base import Strategy

logger = logging.getLogger(__name__)

# Native role names -> standardized role names
_ROLE_ALIASES = {
    "human": "user",
    "user": "user",
    "ai": "assistant",
    "assistant": "assistant",
    "system": "system",
    "tool": "tool",
    "function": "tool",
}


class MemoryItemType(str, Enum):
    MESSAGE = "message"
    STRUCTURED = "structured"
    UNKNOWN = "unknown"


@dataclass
class StandardizedMemoryItem:
    """Engine-neutral memory record, only alive during a swap."""
    type: MemoryItemType
    content: str
    role: str
    timestamp: str = field(default_factory=lambda: _now())
    metadata: dict = field(default_factory=dict)


@dataclass
class MemoryTransferReport:
    total: int = 0
    transferred: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.failed == 0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_role(raw: Any, default: str = "unknown") -> str:
    if not raw:
        return default
    return _ROLE_ALIASES.get(str(raw).lower(), str(raw).lower())


def _timestamp_of(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if value:
        return str(value)
    return _now()


def standardize_memory_item(item: Any) -> StandardizedMemoryItem:
    """Detect the shape of a native memory item and normalize it.

    Shapes, tried in order: message-like objects (``content`` plus ``type``
    or ``role`` attributes), raw strings, mappings, anything else.
    """
    if not isinstance(item, (str, Mapping)) and getattr(item, "content", None) is not None:
        extras = dict(getattr(item, "additional_kwargs", None) or {})
        timestamp = extras.pop("timestamp", None) or getattr(item, "timestamp", None)
        role = getattr(item, "role", None) or getattr(item, "type", None)
        return StandardizedMemoryItem(
            type=MemoryItemType.MESSAGE,
            content=str(item.content),
            role=normalize_role(role),
            timestamp=_timestamp_of(timestamp),
            metadata=extras,
        )

    if isinstance(item, str):
        return StandardizedMemoryItem(
            type=MemoryItemType.MESSAGE,
            content=item,
            role="user",
        )

    if isinstance(item, Mapping):
        content = item.get("content")
        if content is None:
            content = json.dumps(dict(item), default=str)
        metadata = item.get("metadata")
        if metadata is None:
            metadata = {k: v for k, v in item.items() if k not in ("content", "role", "timestamp")}
        return StandardizedMemoryItem(
            type=MemoryItemType.STRUCTURED,
            content=str(content),
            role=normalize_role(item.get("role"), default="system"),
            timestamp=_timestamp_of(item.get("timestamp")),
            metadata=dict(metadata),
        )

    return StandardizedMemoryItem(
        type=MemoryItemType.UNKNOWN,
        content=str(item),
        role="system",
    )


async def transfer_memory(items: Iterable[Any], target: "Strategy") -> MemoryTransferReport:
    """Replay native memory items into ``target``.

    Individual failures are counted and logged; they never abort the transfer.
    """
    report = MemoryTransferReport()
    for item in items:
        report.total += 1
        try:
            standardized = standardize_memory_item(item)
            await target.load_standardized_memory(standardized)
        except Exception as e:
            failure = PartialMemoryTransferFailure(f"item {report.total - 1}: {e}")
            report.failed += 1
            report.errors.append(str(failure))
            logger.warning("Failed to transfer memory item: %s", failure)
            continue
        report.transferred += 1

    logger.info(
        "Memory transfer complete: %d transferred, %d failed",
        report.transferred, report.failed,
    )
    return report
