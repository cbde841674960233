"""Renderings of process descriptors."""

import json
from enum import Enum
from typing import Callable

from procsnap.models import ProcessDescriptor

Formatter = Callable[[ProcessDescriptor], str]


class FormatKind(Enum):
    """Output formats for a descriptor."""

    STRING = "string"
    JSON = "json"
    RAW = "raw"
    VALUES = "values"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_string(descriptor: ProcessDescriptor) -> str:
    return str(descriptor)


def format_json(descriptor: ProcessDescriptor) -> str:
    return json.dumps(descriptor.to_dict())


def format_raw(descriptor: ProcessDescriptor) -> str:
    """Space-separated output fields, one process per line."""
    d = descriptor
    return " ".join(
        str(value)
        for value in (
            d.pid,
            d.ppid,
            d.pgrp,
            d.uid,
            d.username,
            d.state,
            d.comm,
            d.cgroup.path,
            d.priority,
            d.nice,
            d.num_threads,
            d.rt_priority,
            d.policy,
            d.oom_score_adj,
            d.ioprio_class,
            d.ioprio_level,
        )
    )


def format_values(descriptor: ProcessDescriptor) -> str:
    """Bracketed list with quoted strings, ready to embed in a JSON array."""
    d = descriptor
    values = [
        d.pid,
        d.ppid,
        d.pgrp,
        d.uid,
        d.username,
        d.state,
        d.cgroup.top,
        d.cgroup.leaf,
        d.comm,
        d.cgroup.path,
        d.priority,
        d.nice,
        d.num_threads,
        d.rt_priority,
        d.policy,
        d.oom_score_adj,
        d.io_class_name,
        d.ioprio_level,
    ]
    return "[" + ",".join(json.dumps(value) for value in values) + "]"


_FORMATTERS: dict[FormatKind, Formatter] = {
    FormatKind.STRING: format_string,
    FormatKind.JSON: format_json,
    FormatKind.RAW: format_raw,
    FormatKind.VALUES: format_values,
}


def get_formatter(name: str) -> Formatter:
    """Return the formatter for a format name; unknown names give STRING."""
    try:
        kind = FormatKind(name.strip().lower())
    except ValueError:
        kind = FormatKind.STRING
    return _FORMATTERS[kind]
