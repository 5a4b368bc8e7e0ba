"""Order form OCR service.

Rasterizes the first page of a scanned order form PDF, recognizes its
text with Spanish Tesseract and extracts the requester and delivery
fields into a structured record that can be appended to a spreadsheet.
"""

__version__ = "1.0.0"
