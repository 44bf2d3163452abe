from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Tuple

import pymupdf

from app.config.settings import Settings, settings as default_settings
from app.utils.datetime_utils import to_local
from app.utils.logging import get_logger

logger = get_logger()

# A4 landscape, used when no template image is configured
DEFAULT_PAGE_SIZE = (842.0, 595.0)

NEUTRAL = (0.2, 0.2, 0.2)
MUTED = (0.45, 0.45, 0.45)
ACCENT = (0.44, 0.29, 0.18)

TITLE = "СЕРТИФИКАТ"
REASON = "За успешное прохождение программы обучения, присуждается:"
QUALIFICATION_LABEL = "Квалификация"
CENTER_LABEL = "Центр"


@dataclass(frozen=True)
class CertificateContent:
    recipient_name: str
    qualification: str
    training_center_name: str
    issued_at: datetime
    certificate_number: str


class CertificateRenderer:
    """Draws a one-page certificate PDF with PyMuPDF.

    The page takes the size of the PNG template when one is configured,
    and text uses the configured TTF font (needed for Cyrillic output).
    Without a font the built-in Helvetica is used.
    """

    FONT_NAME = "certfont"

    def __init__(self, config: Settings = default_settings):
        self.template_path = self._existing_path(config.CERTIFICATE_TEMPLATE_PATH)
        self.font_path = self._existing_path(config.CERTIFICATE_FONT_PATH)
        self.timezone = config.TIMEZONE

    @staticmethod
    def _existing_path(raw: str):
        if not raw:
            return None
        path = Path(raw)
        if not path.is_file():
            logger.warning(f"Certificate asset not found: {raw}")
            return None
        return path

    def _font(self) -> pymupdf.Font:
        if self.font_path:
            return pymupdf.Font(fontfile=str(self.font_path))
        return pymupdf.Font("helv")

    def render(self, content: CertificateContent) -> bytes:
        doc = pymupdf.open()
        try:
            width, height = self._page_size()
            page = doc.new_page(width=width, height=height)

            if self.template_path:
                page.insert_image(page.rect, filename=str(self.template_path))

            font = self._font()
            self._draw_body(page, font, content, width, height)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    def _page_size(self) -> Tuple[float, float]:
        if not self.template_path:
            return DEFAULT_PAGE_SIZE
        pixmap = pymupdf.Pixmap(str(self.template_path))
        return float(pixmap.width), float(pixmap.height)

    def _draw_body(
        self,
        page: pymupdf.Page,
        font: pymupdf.Font,
        content: CertificateContent,
        width: float,
        height: float,
    ) -> None:
        title_size = round(height * 0.045)
        name_size = round(height * 0.05)
        reason_size = round(height * 0.024)
        label_size = round(height * 0.022)
        qualification_size = round(height * 0.028)
        small_size = round(height * 0.02)

        # Baselines, measured from the top of the page
        self._centered(page, font, TITLE, title_size, height * 0.18, width, NEUTRAL)
        self._centered(
            page, font, content.recipient_name, name_size, height * 0.32, width, NEUTRAL
        )

        for index, line in enumerate(
            self._wrap(REASON, font, reason_size, width * 0.7)
        ):
            self._centered(
                page,
                font,
                line,
                reason_size,
                height * 0.4 + index * (reason_size + 4),
                width,
                MUTED,
            )

        self._centered(
            page, font, QUALIFICATION_LABEL, label_size, height * 0.48, width, MUTED
        )
        self._centered(
            page,
            font,
            content.qualification,
            qualification_size,
            height * 0.53,
            width,
            ACCENT,
        )

        left_x = width * 0.08
        right_edge = width - width * 0.08
        bottom_y = height - height * 0.12
        upper_y = bottom_y - (small_size + 4)

        self._text(page, CENTER_LABEL, (left_x, upper_y), small_size, MUTED)
        self._text(
            page, content.training_center_name, (left_x, bottom_y), small_size + 1, NEUTRAL
        )

        date_text = to_local(content.issued_at, self.timezone).strftime("%d.%m.%Y")
        number_text = f"№ {content.certificate_number}"
        for text, y in ((date_text, upper_y), (number_text, bottom_y)):
            text_width = font.text_length(text, fontsize=small_size + 1)
            self._text(page, text, (right_edge - text_width, y), small_size + 1, NEUTRAL)

    def _centered(self, page, font, text, size, y, width, color) -> None:
        x = (width - font.text_length(text, fontsize=size)) / 2
        self._text(page, text, (x, y), size, color)

    def _text(self, page: pymupdf.Page, text: str, point, size, color) -> None:
        if self.font_path:
            page.insert_text(
                point,
                text,
                fontsize=size,
                fontname=self.FONT_NAME,
                fontfile=str(self.font_path),
                color=color,
            )
        else:
            page.insert_text(point, text, fontsize=size, fontname="helv", color=color)

    @staticmethod
    def _wrap(text: str, font: pymupdf.Font, size: float, max_width: float) -> List[str]:
        lines: List[str] = []
        line = ""
        for word in text.split():
            candidate = f"{line} {word}" if line else word
            if font.text_length(candidate, fontsize=size) > max_width and line:
                lines.append(line)
                line = word
            else:
                line = candidate
        if line:
            lines.append(line)
        return lines
