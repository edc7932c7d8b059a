"""Output formatting for equivalent plans."""

from exchange_planner.output.formatters import (
    format_exchanges,
    format_plan_json,
    format_plan_json_string,
    format_plan_markdown
)

__all__ = [
    "format_exchanges",
    "format_plan_json",
    "format_plan_json_string",
    "format_plan_markdown"
]
