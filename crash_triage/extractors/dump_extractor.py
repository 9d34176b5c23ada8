"""
Dump property extractor implementation.

Parses JSON records and debugger-style text headers into a normalized,
flat property set. Unknown fields are preserved as opaque properties.
"""

import hashlib
import json
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Annotated

from pydantic import Field, TypeAdapter, ValidationError as PydanticValidationError
from typing_extensions import TypedDict, override

from ..exceptions import ConfigurationError, MalformedDumpError
from ..interfaces import PropertyExtractor
from ..logging_config import get_logger
from ..models import PropertySet, PropertyValue, RawDump

# Module-level logger
logger = get_logger("dump_extractor")

DEFAULT_STACK_DEPTH = 10

FIELD_ALIASES = {
    "id": "dump_id",
    "dumpid": "dump_id",
    "crash_id": "dump_id",
    "time": "timestamp",
    "crash_time": "timestamp",
    "faulting_module": "module",
    "module_name": "module",
    "image": "module",
    "exception": "exception_code",
    "exceptioncode": "exception_code",
    "offset": "fault_offset",
    "faulting_offset": "fault_offset",
    "stack": "stack_trace",
    "stack_text": "stack_trace",
    "backtrace": "stack_trace",
    "frames": "stack_trace",
}

# Normalized properties in the order they appear in a property set
KNOWN_FIELDS = (
    "module",
    "exception_code",
    "fault_offset",
    "fault_type",
    "signal",
)

STACK_HEADER_RE = re.compile(r"^(stack|stack_text|stack_trace|backtrace)\s*:?\s*$", re.IGNORECASE)
NUMBERED_FRAME_RE = re.compile(r"^#\d+\s+")
FRAME_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]+\s+in\s+")
FRAME_OFFSET_RE = re.compile(r"\+0x[0-9a-fA-F]+")
HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")
CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class DumpHeader(TypedDict):
    """Mandatory header fields every dump must carry."""

    dump_id: str | int
    timestamp: Annotated[float, Field(allow_inf_nan=False)] | datetime


_header_adapter = TypeAdapter(DumpHeader)


def normalize_key(key: str) -> str:
    """Map a source field name onto its snake_case property name."""
    snake = CAMEL_BOUNDARY_RE.sub("_", key.strip())
    snake = re.sub(r"[\s\-.]+", "_", snake).lower()
    return FIELD_ALIASES.get(snake, FIELD_ALIASES.get(snake.replace("_", ""), snake))


def normalize_frame(frame: str) -> str:
    """Strip frame numbers, addresses and offsets so rebuilt binaries hash alike."""
    frame = NUMBERED_FRAME_RE.sub("", frame.strip())
    frame = FRAME_ADDRESS_RE.sub("", frame)
    frame = FRAME_OFFSET_RE.sub("", frame)
    return " ".join(frame.split())


def compute_stack_hash(frames: list[str], depth: int = DEFAULT_STACK_DEPTH) -> str:
    """SHA-1 over the top `depth` normalized frames."""
    top = [normalize_frame(f) for f in frames[:depth]]
    return hashlib.sha1("\n".join(top).encode("utf-8")).hexdigest()


def opaque_value(value: object) -> PropertyValue:
    """Keep scalars as-is and reduce anything structured to canonical JSON text."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, (str, bool, int, float)):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


class DumpPropertyExtractor(PropertyExtractor):
    """
    Extractor for JSON and text-header crash dumps.

    JSON payloads must be objects. Text payloads are `Key: Value` lines,
    optionally followed by a `Stack:` section or numbered `#N` frames.
    """

    def __init__(self, stack_depth: int = DEFAULT_STACK_DEPTH):
        """
        Initialize extractor.

        Args:
            stack_depth: Number of top frames that feed the stack hash
        """
        if stack_depth <= 0:
            raise ConfigurationError(f"stack_depth must be positive, got {stack_depth}")
        self.stack_depth: int = stack_depth

    @override
    def extract(self, raw: RawDump | bytes | str | Mapping[str, object]) -> PropertySet:
        """
        Extract normalized properties from a raw dump.

        Args:
            raw: RawDump, payload bytes/text, or an already-decoded record

        Returns:
            Ordered property set starting with dump_id and timestamp

        Raises:
            MalformedDumpError: if dump id or timestamp is missing or unparseable
        """
        record = self._decode(raw)
        fields = {normalize_key(str(k)): v for k, v in record.items()}

        dump_id, timestamp = self._parse_header(fields)
        properties: PropertySet = {"dump_id": dump_id, "timestamp": timestamp}

        for name in KNOWN_FIELDS:
            if name in fields and fields[name] is not None:
                properties[name] = self._normalize_known(name, fields[name])

        frames = self._frames(fields.get("stack_trace"))
        if "stack_hash" in fields and fields["stack_hash"] not in (None, ""):
            properties["stack_hash"] = str(fields["stack_hash"])
        elif frames:
            properties["stack_hash"] = compute_stack_hash(frames, self.stack_depth)
        if frames:
            properties["stack_trace"] = "\n".join(frames)
            properties["frame_count"] = len(frames)
            properties["top_frame"] = normalize_frame(frames[0])

        handled = {"dump_id", "timestamp", "stack_trace", "stack_hash", *KNOWN_FIELDS}
        for name, value in fields.items():
            if name not in handled and name not in properties:
                properties[name] = opaque_value(value)

        logger.debug(f"Extracted {len(properties)} properties from dump {dump_id}")
        return properties

    def _decode(self, raw: RawDump | bytes | str | Mapping[str, object]) -> Mapping[str, object]:
        """Turn any accepted input into a field mapping."""
        if isinstance(raw, RawDump):
            raw = raw.payload
        if isinstance(raw, Mapping):
            return raw
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        text = raw.lstrip("\ufeff").strip()
        if not text:
            raise MalformedDumpError("empty dump payload")

        if text[0] in "{[":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise MalformedDumpError(f"invalid JSON dump: {e}") from e
            if not isinstance(data, dict):
                raise MalformedDumpError(f"JSON dump must be an object, got {type(data).__name__}")
            return data

        return self._parse_text(text)

    def _parse_text(self, text: str) -> dict[str, object]:
        """Parse `Key: Value` header lines and a trailing stack section."""
        fields = dict[str, object]()
        frames = list[str]()
        in_stack = False

        for line in text.splitlines():
            stripped = line.strip()
            if not stripped:
                in_stack = False
                continue
            if STACK_HEADER_RE.match(stripped):
                in_stack = True
                continue
            if in_stack or NUMBERED_FRAME_RE.match(stripped):
                frames.append(stripped)
                continue

            key, sep, value = stripped.partition(":")
            if not sep or not key.strip():
                logger.debug(f"Ignoring unrecognized header line: {stripped!r}")
                continue
            fields[key.strip()] = value.strip()

        if frames:
            fields["stack_trace"] = frames
        return fields

    def _parse_header(self, fields: Mapping[str, object]) -> tuple[str, float]:
        """Validate the mandatory dump id and timestamp."""
        try:
            header = _header_adapter.validate_python(
                {k: fields[k] for k in ("dump_id", "timestamp") if k in fields}
            )
        except PydanticValidationError as e:
            raise MalformedDumpError(f"invalid dump header: {e.errors(include_url=False)}") from e

        dump_id = str(header["dump_id"]).strip()
        if not dump_id:
            raise MalformedDumpError("dump_id cannot be empty")

        ts = header["timestamp"]
        if isinstance(ts, datetime):
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            timestamp = ts.timestamp()
        else:
            timestamp = float(ts)
        if not math.isfinite(timestamp):
            raise MalformedDumpError(f"timestamp must be finite: {timestamp}")
        if timestamp < 0:
            raise MalformedDumpError(f"timestamp cannot be negative: {timestamp}")

        return dump_id, timestamp

    def _normalize_known(self, name: str, value: object) -> PropertyValue:
        if name == "exception_code":
            if isinstance(value, int) and not isinstance(value, bool):
                return format(value & 0xFFFFFFFF, "08x")
            code = str(value).strip()
            if HEX_RE.match(code):
                return code.lower().removeprefix("0x")
            return code
        if name == "fault_offset":
            if isinstance(value, int) and not isinstance(value, bool):
                return hex(value)
            offset = str(value).strip()
            if HEX_RE.match(offset):
                return "0x" + offset.lower().removeprefix("0x").lstrip("0").rjust(1, "0")
            return offset
        if name == "signal" and isinstance(value, int):
            return value
        return str(value).strip() if isinstance(value, str) else opaque_value(value)

    def _frames(self, stack: object) -> list[str]:
        """Accept a frame list or newline-separated text."""
        if stack is None:
            return []
        if isinstance(stack, str):
            lines = stack.splitlines()
        elif isinstance(stack, list):
            lines = [f if isinstance(f, str) else opaque_value(f) for f in stack]
        else:
            lines = [str(opaque_value(stack))]
        return [str(line).strip() for line in lines if str(line).strip()]
