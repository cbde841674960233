"""Decoder for /proc/<pid>/stat records.

The layout is fixed by the kernel (see proc(5)):

    14066 (nvim) S 14064 14063 14063 0 -1 4194304 5898 ...

The command name sits between the first ``(`` and the *last* ``)`` since it
may itself contain spaces or parentheses; every field after it is a
whitespace-delimited token at a fixed position.
"""

from typing import NamedTuple

from procsnap.errors import MalformedRecord
from procsnap.models import ProcessStat


class StatField(NamedTuple):
    """Decoding rule for one positional field after the command name."""

    name: str
    bits: int
    signed: bool


def _d(name: str) -> StatField:
    return StatField(name, 32, True)


def _u(name: str) -> StatField:
    return StatField(name, 32, False)


def _ld(name: str) -> StatField:
    return StatField(name, 64, True)


def _lu(name: str) -> StatField:
    return StatField(name, 64, False)


# Fields (4) through (52); (3) state is decoded separately
STAT_FIELDS: tuple[StatField, ...] = (
    _d("ppid"),
    _d("pgrp"),
    _d("session"),
    _d("tty_nr"),
    _d("tpgid"),
    _u("flags"),
    _lu("minflt"),
    _lu("cminflt"),
    _lu("majflt"),
    _lu("cmajflt"),
    _lu("utime"),
    _lu("stime"),
    _ld("cutime"),
    _ld("cstime"),
    _ld("priority"),
    _ld("nice"),
    _ld("num_threads"),
    _ld("itrealvalue"),
    _lu("starttime"),  # %llu
    _lu("vsize"),
    _ld("rss"),
    _lu("rsslim"),
    _lu("startcode"),
    _lu("endcode"),
    _lu("startstack"),
    _lu("kstkesp"),
    _lu("kstkeip"),
    _lu("signal"),
    _lu("blocked"),
    _lu("sigignore"),
    _lu("sigcatch"),
    _lu("wchan"),
    _lu("nswap"),
    _lu("cnswap"),
    _d("exit_signal"),
    _d("processor"),
    _u("rt_priority"),
    _u("policy"),
    _lu("delayacct_blkio_ticks"),  # %llu
    _lu("guest_time"),
    _ld("cguest_time"),
    _lu("start_data"),
    _lu("end_data"),
    _lu("start_brk"),
    _lu("arg_start"),
    _lu("arg_end"),
    _lu("env_start"),
    _lu("env_end"),
    _d("exit_code"),
)

# pid, comm, state plus the positional fields
STAT_FIELD_COUNT = 3 + len(STAT_FIELDS)


def _is_decimal(token: str) -> bool:
    """Plain ASCII decimal with an optional minus, as the kernel prints them."""
    digits = token[1:] if token.startswith("-") else token
    return token.isascii() and digits.isdigit()


def _decode_int(token: str, field_def: StatField) -> int:
    """Decode one token, enforcing the field's width and signedness."""
    if not _is_decimal(token):
        raise MalformedRecord(f"{field_def.name}: not an integer: {token!r}")
    value = int(token)

    if field_def.signed:
        low, high = -(1 << (field_def.bits - 1)), (1 << (field_def.bits - 1)) - 1
    else:
        low, high = 0, (1 << field_def.bits) - 1
    if not low <= value <= high:
        raise MalformedRecord(f"{field_def.name}: {value} out of range [{low}, {high}]")
    return value


def parse_stat(record: str) -> ProcessStat:
    """Parse one /proc/<pid>/stat record into a ProcessStat.

    Fields past the 52nd (added by newer kernels) are ignored.

    Raises:
        MalformedRecord: The record is short, has a non-numeric or
            out-of-range field, or lacks the parenthesized command name.
    """
    record = record.strip()
    tokens = record.split(None, 1)
    if not tokens:
        raise MalformedRecord("empty record")

    if not _is_decimal(tokens[0]):
        raise MalformedRecord(f"pid: not an integer: {tokens[0]!r}")
    pid = int(tokens[0])
    if pid <= 0 or pid > (1 << 31) - 1:
        raise MalformedRecord(f"pid: {pid} out of range")

    open_at = record.find("(")
    close_at = record.rfind(")")
    if open_at < 0 or close_at < open_at:
        raise MalformedRecord(f"pid {pid}: command name not parenthesized")
    if record[:open_at].strip() != tokens[0]:
        raise MalformedRecord(f"pid {pid}: unexpected text before command name")
    comm = record[open_at + 1 : close_at]

    rest = record[close_at + 1 :].split()
    if len(rest) < 1 + len(STAT_FIELDS):
        raise MalformedRecord(
            f"pid {pid}: expected {STAT_FIELD_COUNT} fields, got {len(rest) + 2}"
        )

    state = rest[0]
    if len(state) != 1:
        raise MalformedRecord(f"pid {pid}: state must be one character: {state!r}")

    values = {
        field_def.name: _decode_int(token, field_def)
        for field_def, token in zip(STAT_FIELDS, rest[1:])
    }
    return ProcessStat(pid=pid, comm=comm, state=state, **values)
