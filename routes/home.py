"""Home route."""
from starlette.responses import RedirectResponse


def setup_home_routes(app):
    """Register home routes."""

    @app.get("/")
    def home(request):
        return RedirectResponse("/leaderboard", status_code=303)
