"""Document lifecycle hooks.

Usage:
    from metadoc.hooks import HookEvent, HookRegistry

    hooks = HookRegistry()
    hooks.register("Invoice", {"beforeSave": compute_total})
"""

from metadoc.hooks.registry import HookRegistry
from metadoc.hooks.types import HookEvent, HookFn, HookSet

__all__ = ["HookEvent", "HookFn", "HookRegistry", "HookSet"]
