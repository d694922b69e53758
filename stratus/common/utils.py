import hashlib
import json
import os
import re
from typing import Any

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


def sanitized_name(name: str) -> str:
    """
    Strip every character CloudFormation does not accept in a logical id.
    """
    return _NON_ALPHANUMERIC.sub("", name)


def content_digest(*parts: Any) -> str:
    """
    Stable SHA-1 digest over the JSON encoding of the given parts.

    Dictionaries are encoded with sorted keys so that equal content always yields the same digest,
    independently of insertion order.
    """
    hashed_content = hashlib.sha1()
    for part in parts:
        if isinstance(part, str):
            encoded = part.encode("utf-8")
        else:
            encoded = json.dumps(part, sort_keys=True, default=str).encode("utf-8")
        hashed_content.update(encoded)
        hashed_content.update(b"\x00")
    return hashed_content.hexdigest()


def cloudformation_resource_name(prefix: str, *parts: Any) -> str:
    """
    Deterministic logical resource name, so that an unchanged definition keeps its logical name
    between builds and CloudFormation updates the resource in place.
    """
    resource_name = sanitized_name(prefix)
    if parts:
        resource_name += content_digest(*parts)[:16]
    return resource_name


def get_handler_symbol(handler: Any) -> str:
    module_name = getattr(handler, "__module__", None) or "app"
    qualified_name = getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None)
    if qualified_name is None:
        qualified_name = type(handler).__name__
    return f"{module_name}.{qualified_name}"


def relative_path(path: str) -> str:
    cwd = os.getcwd()
    if path.startswith(cwd):
        return os.path.relpath(path, cwd)
    return path


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
