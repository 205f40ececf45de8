"""
Diagnostic Stats Parser

Memcached has no command that lists stored keys. They are recovered from
two free-text diagnostic replies meant for human operators:

    stats items            -> STAT items:<slab>:number <count>
                              STAT items:<slab>:age <seconds>
                              ...
                              END
    stats cachedump <slab> 0
                           -> ITEM <key> [<bytes> b; <exptime> s]
                              ...
                              END

EnumerationParser is a two-phase line parser. Phase SLABS collects the
occupied slab ids from count lines, phase KEYS collects keys from dump
lines. A terminator line closes the current phase only. Lines matching
neither pattern are ignored.

The parser never reads from a socket, so it can be fed canned replies.
Item commands go through pymemcache; only these two diagnostic commands
are encoded here.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterable, List, Tuple

from ..errors import StorageError

END = "END"
ERROR_PREFIXES = ("ERROR", "CLIENT_ERROR", "SERVER_ERROR")

SLAB_COUNT_PATTERN = re.compile(r"^STAT items:(\d+):number (\d+)")
ITEM_PATTERN = re.compile(r"^ITEM (\S+)")


def encode_command(*parts) -> bytes:
    """Join command words with spaces and terminate with CRLF."""
    return " ".join(str(part) for part in parts).encode() + b"\r\n"


def build_stats_items() -> bytes:
    return encode_command("stats", "items")


def build_cachedump(slab_id: int, limit: int = 0) -> bytes:
    """Build a per-slab key dump request. A limit of 0 means no limit."""
    return encode_command("stats", "cachedump", slab_id, limit)


def decode_line(data: bytes) -> str:
    """Decode a reply line and drop its line terminator."""
    return data.decode("utf-8", errors="replace").rstrip("\r\n")


def is_error_line(line: str) -> bool:
    return line.split(" ", 1)[0] in ERROR_PREFIXES


class Phase(Enum):
    """Which diagnostic reply the parser is consuming."""
    SLABS = auto()
    KEYS = auto()


def is_terminator(line: str) -> bool:
    """A reply ends on a line that is exactly END."""
    return line.rstrip("\r\n") == END


@dataclass
class EnumerationParser:
    """
    Incremental parser for the key enumeration conversation.

    Usage:
        parser = EnumerationParser()
        for line in stats_items_reply:
            if parser.feed(line):
                break
        for slab_id in parser.slab_ids:
            parser.begin_dump()
            for line in cachedump_reply(slab_id):
                if parser.feed(line):
                    break
        parser.keys

    Attributes:
        phase: The reply currently being parsed
        slab_ids: Occupied slab ids in the order the server reported them
        keys: Keys collected across every dump so far
    """
    phase: Phase = Phase.SLABS
    slab_ids: List[int] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)

    def begin_dump(self) -> None:
        """Switch to parsing a cachedump reply."""
        self.phase = Phase.KEYS

    def feed(self, line: str) -> bool:
        """
        Consume one reply line.

        Args:
            line: A reply line, with or without its line terminator

        Returns:
            True if the line terminated the current reply.

        Raises:
            StorageError: the server answered with an error line
        """
        line = line.rstrip("\r\n")
        if is_terminator(line):
            return True
        if is_error_line(line):
            raise StorageError(f"server error: {line}")

        if self.phase is Phase.SLABS:
            match = SLAB_COUNT_PATTERN.match(line)
            if match:
                slab_id = int(match.group(1))
                if slab_id not in self.slab_ids:
                    self.slab_ids.append(slab_id)
        else:
            match = ITEM_PATTERN.match(line)
            if match:
                self.keys.append(match.group(1))
        return False


def parse_slab_ids(lines: Iterable[str]) -> Tuple[List[int], bool]:
    """
    Extract occupied slab ids from a stats items reply.

    Returns:
        Tuple of (slab_ids, terminated). terminated is False if the lines
        ran out before an END line.
    """
    parser = EnumerationParser()
    for line in lines:
        if parser.feed(line):
            return parser.slab_ids, True
    return parser.slab_ids, False


def parse_cachedump_keys(lines: Iterable[str]) -> Tuple[List[str], bool]:
    """
    Extract keys from a stats cachedump reply.

    Returns:
        Tuple of (keys, terminated). Duplicate keys are kept.
    """
    parser = EnumerationParser(phase=Phase.KEYS)
    for line in lines:
        if parser.feed(line):
            return parser.keys, True
    return parser.keys, False
