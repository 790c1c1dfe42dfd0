"""
PDF Combiner Module

Merges single-badge documents into one multi-page PDF so that a whole event
can be printed or downloaded in one go. Each input document contributes its
pages in order.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import pikepdf

from badgeforge.canvas.export import PdfExporter
from badgeforge.canvas.template import Template

logger = logging.getLogger(__name__)


def combine_documents(documents: Iterable[bytes], title: Optional[str] = None) -> bytes:
    """Concatenate PDF documents (as bytes) into one PDF."""
    out = pikepdf.Pdf.new()
    sources = []
    try:
        for i, data in enumerate(documents):
            try:
                src = pikepdf.Pdf.open(io.BytesIO(data))
            except pikepdf.PdfError:
                logger.exception("Skipping unreadable document %d", i)
                continue
            sources.append(src)
            out.pages.extend(src.pages)
        if title:
            with out.open_metadata(set_pikepdf_as_editor=False) as meta:
                meta["dc:title"] = title
        buf = io.BytesIO()
        out.save(buf)
        logger.debug("Combined %d documents into %d pages", len(sources), len(out.pages))
        return buf.getvalue()
    finally:
        for src in sources:
            src.close()
        out.close()


class PDFCombiner:
    """Renders one page per record and merges them into a single document."""

    def __init__(self, exporter: Optional[PdfExporter] = None) -> None:
        self.exporter = exporter or PdfExporter()

    def export_batch(self, template: Template, records: Iterable[Mapping[str, Any]]) -> bytes:
        pages = self.exporter.export_pages(template, records)
        if not pages:
            raise ValueError("No records to export")
        return combine_documents(pages, title=template.name)

    def export_batch_to_file(self, path: str | Path, template: Template,
                             records: Iterable[Mapping[str, Any]]) -> Path:
        p = Path(path)
        p.write_bytes(self.export_batch(template, records))
        logger.info("Exported batch %s", p)
        return p
