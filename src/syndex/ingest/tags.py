"""Tag classification for integration artifacts (APIs, proxies, sequences, ...).

Every prefix-stripped tag falls into at most one role. Tags with no role are
transparent to the chunker: their children are visited, no fragment is made.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    CONTAINER = "container"
    FLOW = "flow"
    LEAF = "leaf"


CONTAINER_TAGS: frozenset[str] = frozenset(
    [
        "api", "proxy", "sequence", "endpoint", "localEntry", "resource",
        "inboundEndpoint", "template", "task", "messageStore", "messageProcessor",
    ]
)

FLOW_TAGS: frozenset[str] = frozenset(["inSequence", "outSequence", "faultSequence"])

LEAF_TAGS: frozenset[str] = frozenset(
    [
        "log", "payloadFactory", "property", "variable", "filter", "respond",
        "call", "send", "drop", "enrich", "switch", "clone", "iterate",
        "aggregate", "cache", "throttle", "validate", "xslt", "script",
        "callout", "header", "loopback", "datamapper", "foreach",
        "http.post", "http.get", "http.put", "http.delete", "http.patch",
    ]
)

# Container tag → container kind, for containers that are addressable on their own.
TOP_LEVEL_KINDS: dict[str, str] = {
    "api": "api",
    "proxy": "proxy",
    "sequence": "sequence",
    "endpoint": "endpoint",
    "localEntry": "localEntry",
}

# Artifact directory conventions, used when no enclosing container names the kind.
_PATH_KINDS: tuple[tuple[str, str], ...] = (
    ("/apis/", "api"),
    ("/sequences/", "sequence"),
    ("/proxy-services/", "proxy"),
    ("/endpoints/", "endpoint"),
    ("/local-entries/", "localEntry"),
)

UNKNOWN_KIND = "unknown"

# Attribute preference when resolving a human-readable name, per role.
NAME_ATTRIBUTES: dict[Role, tuple[str, ...]] = {
    Role.CONTAINER: ("name", "context", "key", "uriTemplate", "urlMapping"),
    Role.FLOW: ("key", "name"),
    Role.LEAF: ("name", "key"),
}


def classify(tag: str, attributes: dict[str, str]) -> Role | None:
    """Return the role of an element, or None if it is transparent.

    A ``<sequence key="..."/>`` is a reference to a named sequence (a
    mediator step), not a sequence definition, so it is a leaf.
    """
    if tag in FLOW_TAGS:
        return Role.FLOW
    if tag == "sequence" and "key" in attributes:
        return Role.LEAF
    if tag in CONTAINER_TAGS:
        return Role.CONTAINER
    if tag in LEAF_TAGS:
        return Role.LEAF
    return None


def resolve_name(role: Role, tag: str, attributes: dict[str, str]) -> str:
    """First non-empty attribute from the role's preference list, else the tag."""
    for attr in NAME_ATTRIBUTES[role]:
        value = attributes.get(attr, "").strip()
        if value:
            return value
    return tag


def kind_from_path(path: str) -> str:
    """Infer the container kind from the artifact directory layout."""
    normalized = "/" + path.replace("\\", "/").lstrip("/")
    for marker, kind in _PATH_KINDS:
        if marker in normalized:
            return kind
    return UNKNOWN_KIND
