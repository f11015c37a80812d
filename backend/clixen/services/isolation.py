"""Workflow isolation by naming convention.

Every workflow a user creates in the shared n8n instance is named
``[USR-{user_id}] {name}``. Ownership is a prefix test and listing is a
client-side filter over the n8n workflow list. There is no other isolation.
"""

from typing import Any, Dict, Iterable, List

PREFIX_MARKER = "[USR-"


def user_prefix(user_id: str) -> str:
    return f"{PREFIX_MARKER}{user_id}]"


def isolate_name(name: str, user_id: str) -> str:
    """Prefix *name* with the user's tag. Names already carrying a tag are returned as-is."""
    name = (name or "").strip()
    if name.startswith(PREFIX_MARKER):
        return name
    return f"{user_prefix(user_id)} {name}"


def owns(name: str, user_id: str) -> bool:
    return (name or "").startswith(user_prefix(user_id))


def filter_owned(workflows: Iterable[Dict[str, Any]], user_id: str) -> List[Dict[str, Any]]:
    """Keep only the n8n workflows whose name carries *user_id*'s prefix."""
    return [wf for wf in workflows if owns(wf.get("name", ""), user_id)]


def strip_prefix(name: str) -> str:
    """Display name without the ``[USR-...]`` tag."""
    name = name or ""
    if not name.startswith(PREFIX_MARKER):
        return name
    end = name.find("]")
    if end == -1:
        return name
    return name[end + 1:].lstrip()


def is_legacy(name: str) -> bool:
    """Workflows created before isolation existed have no prefix at all."""
    return PREFIX_MARKER not in (name or "")
