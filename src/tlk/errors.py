"""TLK Error Code Registry.

Provides structured error codes with helpful messages and next steps, and
the exceptions the timeline reconstruction raises when a trace is broken.
Each error has:
- Code: TLK-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """TLK error codes."""

    # Configuration errors (E001-E099)
    E002 = "E002"  # Invalid config value

    # Integrity errors (E200-E299)
    E200 = "E200"  # Trace structure is inconsistent
    E201 = "E201"  # Trace document invalid
    E202 = "E202"  # Trace document failed schema validation
    E203 = "E203"  # Event references a lane that does not exist
    E204 = "E204"  # Event references a request that does not exist

    # File/IO errors (E300-E399)
    E300 = "E300"  # Trace file not found
    E302 = "E302"  # Cannot read file


@dataclass
class TLKError:
    """Structured TLK error with code, message, and next step."""

    code: ErrorCode
    message: str
    next_step: str
    details: Optional[str] = None

    def __str__(self) -> str:
        lines = [
            f"TLK-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the error to stderr (or specified file)."""
        print(str(self), file=file or sys.stderr)


# Pre-defined error templates
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    # (message_template, next_step)
    ErrorCode.E002: (
        "Invalid configuration value: {details}",
        "Run 'tlk --help' for accepted values"
    ),
    ErrorCode.E200: (
        "Trace structure is inconsistent: {details}",
        "The capture or serialization that produced this trace is broken"
    ),
    ErrorCode.E201: (
        "Trace document is invalid: {details}",
        "Check the file is a JSON or YAML mapping with a 'root' request"
    ),
    ErrorCode.E202: (
        "Trace document failed schema validation: {details}",
        "Compare the document against tlk/trace/trace.schema.json"
    ),
    ErrorCode.E203: (
        "Event references a missing lane: {details}",
        "Every event's goid must match the request or a spawned goroutine"
    ),
    ErrorCode.E204: (
        "Event references a missing request: {details}",
        "Check the request id against 'tlk summary --trace <file>'"
    ),
    ErrorCode.E300: (
        "Trace file not found: {details}",
        "Check the --trace path"
    ),
    ErrorCode.E302: (
        "Cannot read file: {details}",
        "Check file permissions and path"
    ),
}


def make_error(code: ErrorCode, details: Optional[str] = None) -> TLKError:
    """Create a TLKError from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        TLKError instance ready to print
    """
    template = ERROR_TEMPLATES.get(code, ("Unknown error", "Run 'tlk --help'"))
    message_template, next_step = template

    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "")

    return TLKError(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


# ============================================================================
# Exceptions
# ============================================================================


class TraceError(Exception):
    """Base for errors raised while reading or reconstructing a trace."""

    code: ErrorCode = ErrorCode.E200

    def to_error(self) -> TLKError:
        return make_error(self.code, str(self))


class TraceLoadError(TraceError):
    """A trace document could not be read or did not match the schema."""

    code = ErrorCode.E201

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []
        if self.errors:
            self.code = ErrorCode.E202


class TraceIntegrityError(TraceError):
    """The trace contradicts itself; the upstream capture is broken."""

    code = ErrorCode.E200


class MissingLaneError(TraceIntegrityError):
    """An event names a concurrency unit that has no lane."""

    code = ErrorCode.E203

    def __init__(self, goid: int, event_type: str, request_id: str) -> None:
        super().__init__(
            f"{event_type} event in request {request_id} belongs to goroutine {goid}, "
            f"which was never spawned"
        )
        self.goid = goid
        self.event_type = event_type
        self.request_id = request_id


class UnresolvedReferenceError(TraceIntegrityError):
    """An event or lookup names a request id that the trace does not hold."""

    code = ErrorCode.E204

    def __init__(self, req_id: str, context: str) -> None:
        super().__init__(f"request {req_id} referenced by {context} does not exist")
        self.req_id = req_id
        self.context = context


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def handle_exception(exc: Exception, code: ErrorCode, details: Optional[str] = None) -> None:
    """Handle an exception with proper error formatting.

    In verbose mode, prints the full traceback.
    Otherwise, prints a formatted error message.
    """
    import traceback

    err = make_error(code, details or str(exc))
    err.print()

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exc()
