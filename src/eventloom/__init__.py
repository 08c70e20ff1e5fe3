"""eventloom: event-driven workflows and ReAct agents."""

from __future__ import annotations

__version__ = "0.1.0"
