import logging


def setup_logging(show_logs: bool = False):
    """Configure root logging once per entry point.

    With show_logs, debug output (including captured CLI output) is shown.
    """
    logging.basicConfig(
        level=logging.DEBUG if show_logs else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    # ARM polling is chatty at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)
