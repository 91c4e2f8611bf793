"""Hook system types.

Defines the per-DocType lifecycle events and the callback set the
document engine dispatches to:
- beforeSave: After validation, before persist (can replace the document, can abort)
- afterSave: After persist, before commit (same transaction, can abort)
- beforeDelete: Before delete, receives the stored document (can abort)
- onSubmit: After the Draft -> Submitted transition, before commit
- onCancel: After the Submitted -> Cancelled transition, before commit

A hook aborts by raising; the operation's transaction rolls back.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from metadoc.auth.types import UserContext

# Hook function signature: (document, acting user) -> replacement document | None
HookFn = Callable[[dict[str, Any], UserContext], "dict[str, Any] | None"]


class HookEvent(Enum):
    BEFORE_SAVE = "beforeSave"
    AFTER_SAVE = "afterSave"
    BEFORE_DELETE = "beforeDelete"
    ON_SUBMIT = "onSubmit"
    ON_CANCEL = "onCancel"


# HookSet attribute for each event
_ATTRIBUTES = {
    HookEvent.BEFORE_SAVE: "before_save",
    HookEvent.AFTER_SAVE: "after_save",
    HookEvent.BEFORE_DELETE: "before_delete",
    HookEvent.ON_SUBMIT: "on_submit",
    HookEvent.ON_CANCEL: "on_cancel",
}


@dataclass
class HookSet:
    """Callbacks registered for one DocType; any of them may be None."""

    before_save: HookFn | None = None
    after_save: HookFn | None = None
    before_delete: HookFn | None = None
    on_submit: HookFn | None = None
    on_cancel: HookFn | None = None

    def get(self, event: HookEvent) -> HookFn | None:
        return getattr(self, _ATTRIBUTES[event])

    def set(self, event: HookEvent, fn: HookFn | None) -> None:
        setattr(self, _ATTRIBUTES[event], fn)

    def merge(self, other: HookSet) -> None:
        """Take every callback ``other`` defines; keep the rest."""
        for f in fields(self):
            fn = getattr(other, f.name)
            if fn is not None:
                setattr(self, f.name, fn)

    @classmethod
    def from_mapping(cls, data: Mapping[str, HookFn]) -> HookSet:
        """Build from ``{"beforeSave": fn, ...}`` keyed by event name.

        Raises:
            ValueError: For keys that are not hook events.
        """
        hook_set = cls()
        for key, fn in data.items():
            hook_set.set(HookEvent(key), fn)
        return hook_set
