"""Scope normalization.

A scope partitions the slug namespace, e.g. per tenant. It is given as a
mapping (``{"realm": "rugby"}``) or as an already normalized sequence of
``"key:value"`` tokens.
"""

from collections.abc import Mapping, Sequence

Scope = Mapping[str, object] | Sequence[str]


def scope_list(scope: Scope | None) -> tuple[str, ...]:
    """Normalize a scope into ``"key:value"`` tokens.

    Sequences pass through unchanged, so normalizing twice is harmless.
    Mappings keep their iteration order. ``None`` and empty scopes become
    ``()``, which means unscoped.

    ::

        scope_list({"realm": "rugby"})  # ("realm:rugby",)
        scope_list(["realm:rugby"])     # ("realm:rugby",)
    """
    if not scope:
        return ()
    if isinstance(scope, str):
        return (scope,)
    if isinstance(scope, Mapping):
        return tuple(f"{key}:{value}" for key, value in scope.items())
    return tuple(scope)


def scope_key(scope: Scope | None) -> str:
    """Order-independent storage key for a scope. ``""`` when unscoped."""
    return "|".join(sorted(scope_list(scope)))
