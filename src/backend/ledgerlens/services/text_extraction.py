"""
Text extraction service for uploaded PDFs and images.
"""

import io
import logging
import re
from typing import List

import pytesseract
import PyPDF2
from PIL import Image, ImageEnhance
from pdf2image import convert_from_bytes

from ledgerlens.config import settings
from ledgerlens.models.document import ExtractedText

logger = logging.getLogger(__name__)

# Below this many characters a PDF is treated as scanned
MIN_TEXT_FOR_NO_OCR = 100

TESSERACT_CONFIG = r'--oem 3 --psm 6'

# Tesseract often reads the rupee sign as '%' ("%250.00")
RUPEE_MISREAD_PATTERN = re.compile(r'(?<![\d.%])%(?=\d[\d,]*\.\d{2}\b)')


def fix_rupee_misreads(text: str) -> str:
    """
    Replace a '%' immediately before a 2-decimal amount with '₹'.

    Examples:
        >>> fix_rupee_misreads("Total %1,250.00")
        'Total ₹1,250.00'
        >>> fix_rupee_misreads("Discount 10% 5.00")
        'Discount 10% 5.00'
    """
    return RUPEE_MISREAD_PATTERN.sub('₹', text)


class TextExtractionService:
    """Service for extracting text from statement and receipt files."""

    def __init__(self):
        """Initialize with Tesseract configuration."""
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    def extract(self, file_data: bytes, mime_type: str, file_name: str = "") -> ExtractedText:
        """
        Extract text from a file (auto-detects format).

        Args:
            file_data: Raw file bytes
            mime_type: MIME type of the file
            file_name: Optional filename for extension detection

        Returns:
            ExtractedText; empty text if extraction failed
        """
        name = file_name.lower()
        is_pdf = mime_type == 'application/pdf' or name.endswith('.pdf')
        is_image = mime_type.startswith('image/') or name.endswith(
            ('.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif')
        )

        if is_pdf:
            return self.extract_from_pdf(file_data)
        if is_image:
            return self.extract_from_image(file_data)

        logger.warning("Unsupported file type for text extraction", extra={"mime_type": mime_type})
        return ExtractedText()

    def extract_from_pdf(self, pdf_data: bytes) -> ExtractedText:
        """
        Extract text from a PDF.
        Tries the embedded text layer first, then falls back to OCR.
        """
        pages = self._extract_pdf_pages_direct(pdf_data)
        text = '\n'.join(pages).strip()

        if len(text) >= MIN_TEXT_FOR_NO_OCR:
            return ExtractedText(text=text, pages=pages, used_ocr=False)

        logger.info("PDF appears to be image-based, using OCR", extra={"direct_chars": len(text)})
        ocr_pages = self._extract_pdf_pages_ocr(pdf_data)
        if not ocr_pages:
            return ExtractedText(text=text, pages=pages, used_ocr=False)

        ocr_pages = [fix_rupee_misreads(p) for p in ocr_pages]
        return ExtractedText(text='\n'.join(ocr_pages).strip(), pages=ocr_pages, used_ocr=True)

    def extract_from_image(self, image_data: bytes) -> ExtractedText:
        try:
            image = Image.open(io.BytesIO(image_data))
            text = self._ocr(image)
        except Exception as e:
            logger.error("Error extracting text from image", extra={"error": str(e)}, exc_info=True)
            return ExtractedText()

        text = fix_rupee_misreads(text).strip()
        return ExtractedText(text=text, pages=[text], used_ocr=True)

    def _extract_pdf_pages_direct(self, pdf_data: bytes) -> List[str]:
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(pdf_data))
            return [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            logger.error("Error in direct PDF text extraction", extra={"error": str(e)}, exc_info=True)
            return []

    def _extract_pdf_pages_ocr(self, pdf_data: bytes) -> List[str]:
        try:
            images = convert_from_bytes(pdf_data)
            return [self._ocr(image) for image in images]
        except Exception as e:
            logger.error("Error in OCR-based PDF text extraction", extra={"error": str(e)}, exc_info=True)
            return []

    def _ocr(self, image: Image.Image) -> str:
        image = self._preprocess_image(image)
        return pytesseract.image_to_string(image, config=TESSERACT_CONFIG)

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Grayscale plus a contrast boost for faded scans."""
        if image.mode != 'RGB':
            image = image.convert('RGB')
        image = image.convert('L')
        return ImageEnhance.Contrast(image).enhance(2.0)
