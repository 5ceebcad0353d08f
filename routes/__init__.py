"""Routes package."""
from routes.utils import init_routes
from routes.home import setup_home_routes
from routes.leaderboard import setup_leaderboard_routes

__all__ = [
    'init_routes',
    'setup_home_routes',
    'setup_leaderboard_routes',
]
