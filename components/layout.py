"""Page layout components."""
from fasthtml.common import *

from config import APP_NAME


def nav_header():
    """Top navigation bar."""
    return Header(
        Div(
            A(APP_NAME, href="/", cls="logo"),
            Nav(A("Leaderboard", href="/leaderboard", cls="nav-link"), cls="nav-links"),
            cls="header-content"
        ),
        cls="site-header"
    )


def page_shell(title: str, *content):
    """Page title, header and main content; fast_app adds the head and its htmx script."""
    return (
        Title(f"{title} - {APP_NAME}"),
        nav_header(),
        Main(*content, cls="container"),
    )


def alert(message: str, type: str = "info"):
    """Alert message box. Types: info, success, warning, error."""
    return Div(message, cls=f"alert alert-{type}")


def card(title: str, *content, cls: str = ""):
    """Card component."""
    return Div(
        H3(title, cls="card-title") if title else None,
        *content,
        cls=f"card {cls}"
    )
