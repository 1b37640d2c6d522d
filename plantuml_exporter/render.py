"""Download rendered diagrams from a PlantUML server.

The exporter only writes links; this module fetches the images those
links point to, so a document can be exported together with local copies
of its diagrams.  Requests are plain GETs of
``<server>/<format>/<token>``.  No retries.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from plantuml_exporter.encoder import encode
from plantuml_exporter.errors import RenderError
from plantuml_exporter.fences import find_blocks
from plantuml_exporter.references import image_url
from plantuml_exporter.settings import Settings

_log = logging.getLogger("render")

DEFAULT_TIMEOUT = 30.0
"""Request timeout in seconds."""

IMAGE_FILENAME_FORMAT = "{stem}-{idx:02d}.{ext}"
"""Format string for downloaded image filenames.

>>> IMAGE_FILENAME_FORMAT.format(stem="design", idx=1, ext="png")
'design-01.png'
"""


class DiagramRenderer:
    """Fetches rendered diagrams over HTTP.

    Args:
        settings: Provides the server URL and output format.
        client: Optional pre-configured client (e.g. with a mock
            transport).  When omitted, one is created and closed by
            :meth:`close`.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(DEFAULT_TIMEOUT),
            follow_redirects=True,
        )

    def __enter__(self) -> DiagramRenderer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def url_for(self, source: str) -> str:
        """Image URL for diagram *source*."""
        return image_url(
            self._settings.server_url,
            self._settings.output_format.value,
            encode(source),
        )

    def fetch(self, source: str) -> bytes:
        """Render diagram *source* and return the image bytes.

        Raises:
            EncodingError: If *source* cannot be encoded.
            RenderError: On transport errors or a non-200 response.
        """
        url = self.url_for(source)
        _log.debug("GET %s", url)
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as exc:
            raise RenderError(f"Request to {url} failed: {exc}") from exc
        if resp.status_code != 200:
            raise RenderError(f"Render failed: HTTP {resp.status_code} for {url}")
        return resp.content

    def render_document(self, text: str, out_dir: Path, stem: str) -> list[Path]:
        """Render every PlantUML block of *text* into *out_dir*.

        Files are named with :data:`IMAGE_FILENAME_FORMAT`, numbered from
        1 in document order.

        Returns:
            Paths of the written image files.

        Raises:
            EncodingError, RenderError: On the first block that fails.
        """
        ext = self._settings.output_format.value
        written: list[Path] = []
        blocks = find_blocks(text)
        if blocks:
            out_dir.mkdir(parents=True, exist_ok=True)
        for idx, block in enumerate(blocks, start=1):
            data = self.fetch(block.payload)
            path = out_dir / IMAGE_FILENAME_FORMAT.format(stem=stem, idx=idx, ext=ext)
            path.write_bytes(data)
            _log.info("  Saved: %s (%d bytes)", path, len(data))
            written.append(path)
        return written
