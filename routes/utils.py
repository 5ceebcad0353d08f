"""Route utilities and shared helpers."""
from datetime import datetime

# Global references - set during app initialization
_hub = None
_db_module = None


def init_routes(hub, db_module):
    """Initialize route utilities with required services."""
    global _hub, _db_module
    _hub = hub
    _db_module = db_module


def get_db():
    """Get database module."""
    return _db_module


def get_hub():
    """Get the leaderboard hub."""
    return _hub


def format_score(score):
    """Format golf score with +/- sign."""
    if score is None:
        return "-"
    if score == 0:
        return "E"
    if score > 0:
        return f"+{score}"
    return str(score)  # Negative numbers already have minus sign


def format_position_change(change: int) -> str:
    """Arrow plus places moved, blank when unchanged."""
    if not change:
        return ""
    if change > 0:
        return f"▲{change}"
    return f"▼{abs(change)}"


def format_thru(thru):
    """Holes completed; 18 shows as F."""
    if not thru:
        return "-"
    return "F" if thru >= 18 else str(thru)


def format_time_ago(updated: datetime, now: datetime) -> str:
    """Format a refresh time as 'X minutes ago'."""
    if updated is None:
        return "Never"
    minutes = int((now - updated).total_seconds() / 60)
    if minutes < 1:
        return "Just now"
    elif minutes == 1:
        return "1 minute ago"
    elif minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    return f"{hours} hours ago"


def find_by_id(rows, row_id):
    """First row with a matching id, or None."""
    if row_id is None:
        return None
    return next((r for r in rows if r.id == row_id), None)
