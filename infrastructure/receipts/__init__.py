from .pdf_renderer import FpdfReceiptRenderer

__all__ = ["FpdfReceiptRenderer"]
