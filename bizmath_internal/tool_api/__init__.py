"""
Plain-function call boundary for the Monte Carlo engine.

Tool names map to handlers in TOOL_HANDLERS; handle_call_tool() validates the
arguments, runs the core and returns a JSON-compatible dict or an
{"error": {"code", "message"}} payload.
"""

from .handlers import TOOL_HANDLERS, handle_call_tool

__all__ = ["TOOL_HANDLERS", "handle_call_tool"]
