from .block_renderer import BlockRenderer
from .pdf_exporter import PdfExporter
from .docx_exporter import DocxExporter
from .drafting import DraftingService
from .signature import SignatureService
from .review import ReviewService

__all__ = [
    "BlockRenderer",
    "PdfExporter",
    "DocxExporter",
    "DraftingService",
    "SignatureService",
    "ReviewService"
]
