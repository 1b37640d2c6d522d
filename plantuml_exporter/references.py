"""Markdown image references pointing at a PlantUML server."""

from __future__ import annotations

IMAGE_LABEL = "PlantUML Diagram"
"""Alt text used for every generated image reference."""


def image_url(server_url: str, output_format: str, token: str) -> str:
    """Build ``<server_url>/<output_format>/<token>``.

    *server_url* is used verbatim: no trailing-slash normalization and
    no validation.

    >>> image_url("http://x/plantuml", "svg", "ABC123")
    'http://x/plantuml/svg/ABC123'
    """
    return f"{server_url}/{output_format}/{token}"


def image_reference(server_url: str, output_format: str, token: str) -> str:
    """Build the markdown image reference that replaces a diagram block.

    >>> image_reference("http://x/plantuml", "svg", "ABC123")
    '![PlantUML Diagram](http://x/plantuml/svg/ABC123)'
    """
    return f"![{IMAGE_LABEL}]({image_url(server_url, output_format, token)})"
