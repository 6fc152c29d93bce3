"""Character sheet exporters."""

from __future__ import annotations

from .pdf import ExportResult, ExportStatus, FieldWriter, PdfForm, SheetExporter, fill_form
from .template import SheetTemplate, TemplateError, TemplateNotReady
from .text import build_character_text

__all__ = [
    "ExportResult",
    "ExportStatus",
    "FieldWriter",
    "PdfForm",
    "SheetExporter",
    "SheetTemplate",
    "TemplateError",
    "TemplateNotReady",
    "build_character_text",
    "fill_form",
]
