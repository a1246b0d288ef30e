"""Tab identifier utilities.

PUBLIC API:
  - make_target: Create tab id from port and page ID
  - parse_target: Parse tab id into port and short ID
  - matches_target: Check a Chrome page against a tab id
"""


def make_target(port: int, page_id: str) -> str:
    """Create tab id from port and Chrome page ID.

    Args:
        port: Chrome debug port (e.g., 9222)
        page_id: Chrome page ID (hex string)

    Returns:
        Tab id in format "{port}:{6-char-lowercase-hex}"

    Examples:
        >>> make_target(9222, "8C5F3A2B...")
        "9222:8c5f3a"
    """
    return f"{port}:{page_id[:6].lower()}"


def parse_target(target: str) -> tuple[int, str]:
    """Parse tab id into port and short ID.

    Raises:
        ValueError: If target is not in "{port}:{id}" format.

    Examples:
        >>> parse_target("9222:8c5f3a")
        (9222, "8c5f3a")
    """
    port_str, short_id = target.split(":", 1)
    return int(port_str), short_id


def matches_target(port: int, page: dict, target: str) -> bool:
    """Check whether a Chrome page dict is the page a tab id refers to."""
    return make_target(port, page.get("id", "")) == target.lower()


__all__ = ["make_target", "parse_target", "matches_target"]
