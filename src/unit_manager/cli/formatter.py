"""
Output formatting utilities for CLI output
"""

import json
import sys
from datetime import timedelta
from typing import Any, Dict, Optional

import yaml

from unit_manager.domain.value_objects import UnitStatus


class OutputFormatter:
    """
    Format command results for different output types
    """

    def __init__(self, format: str = "pretty", use_colors: bool = True):
        self.format = format
        self.use_colors = use_colors and self._supports_color()

        if self.use_colors:
            self.colors = {
                'reset': '\033[0m',
                'red': '\033[91m',
                'green': '\033[92m',
                'yellow': '\033[93m',
                'dim': '\033[2m',
                'bold': '\033[1m'
            }
        else:
            self.colors = {k: '' for k in ['reset', 'red', 'green', 'yellow', 'dim', 'bold']}

    def _supports_color(self) -> bool:
        """Check if terminal supports colors"""
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def _colorize(self, text: str, color: str) -> str:
        return f"{self.colors[color]}{text}{self.colors['reset']}"

    def _render(self, data: Dict[str, Any]) -> str:
        if self.format == "json":
            return json.dumps(data, ensure_ascii=False)
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False).rstrip()

    def format_action(self, unit: str, action: str) -> str:
        """Format the outcome of a start, stop or restart"""
        if self.format == "pretty":
            return f"{self._colorize('✔', 'green')} {action} {self._colorize(unit, 'bold')}"
        return self._render({"unit": unit, "action": action, "result": "done"})

    def format_uptime(self, unit: str, uptime: timedelta) -> str:
        """Format a unit's uptime"""
        if self.format == "pretty":
            return f"{self._colorize(unit, 'bold')} up {format_duration(uptime)}"
        return self._render({"unit": unit, "uptime_seconds": uptime.total_seconds()})

    def format_status(self, unit: str, status: Optional[UnitStatus]) -> str:
        """Format a status change observed by watch"""
        if self.format == "pretty":
            if status is None:
                return f"{self._colorize(unit, 'bold')} {self._colorize('unloaded', 'dim')}"
            color = "green" if status.is_active else "yellow"
            if status.active_state == "failed":
                color = "red"
            state = f"{status.active_state} ({status.sub_state})" if status.sub_state else status.active_state
            return f"{self._colorize(unit, 'bold')} {self._colorize(state, color)}"
        return self._render({"unit": unit, "status": status.to_dict() if status else None})

    def format_error(self, error) -> str:
        return f"{self._colorize('Error:', 'red')} {error}"


def format_duration(duration: timedelta) -> str:
    """Format a duration as e.g. ``2d 3h 4m 5s``"""
    total = int(duration.total_seconds())
    if total < 0:
        return f"-{format_duration(-duration)}"
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)
