import logging

from rich.logging import RichHandler


def configure_logging(level: str = "WARNING") -> None:
    root = logging.getLogger()
    if root.handlers:
        return  # already configured
    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s %(message)s"))
    root.setLevel(level.upper())
    root.addHandler(handler)
