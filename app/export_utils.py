## app/export_utils.py

import io
import logging
from typing import List, Optional, Tuple

from fpdf import FPDF
from PIL import Image
from pydantic import BaseModel

from models import AspectRatio, Panel

logger = logging.getLogger(__name__)

A4_MM = (210, 297)
MARGIN = 10
FONT = "Helvetica"

# the PDF core fonts only cover latin-1
_TYPOGRAPHY = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"', "–": "-", "—": "-", "…": "..."})


class TextLine(BaseModel):
    y: float
    text: str
    size: int
    color: Tuple[int, int, int]


class ImagePlacement(BaseModel):
    x: float
    y: float
    w: float
    h: float
    jpeg: bytes


class PageLayout(BaseModel):
    label: str
    image: Optional[ImagePlacement] = None
    lines: List[TextLine] = []

    @property
    def texts(self) -> List[str]:
        return [self.label] + [line.text for line in self.lines]


def page_size(aspect_ratio: AspectRatio) -> Tuple[float, float]:
    w, h = A4_MM
    return (h, w) if aspect_ratio == AspectRatio.LANDSCAPE else (w, h)


def fit_image(img_w: float, img_h: float, box_w: float, box_h: float) -> Tuple[float, float]:
    """Largest size inside box_w x box_h with the image's aspect ratio."""
    ratio = img_w / img_h
    w, h = box_w, box_w / ratio
    if h > box_h:
        h = box_h
        w = h * ratio
    return w, h


def _latin1(text: str) -> str:
    return text.translate(_TYPOGRAPHY).encode("latin-1", "replace").decode("latin-1")


def _wrap(pdf: FPDF, text: str, max_width: float) -> List[str]:
    """Greedy word wrap using the current font's metrics; overlong words are split by character."""
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if pdf.get_string_width(candidate) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = ""
            for ch in word:
                if pdf.get_string_width(current + ch) > max_width and current:
                    lines.append(current)
                    current = ""
                current += ch
        lines.append(current)
    return lines


def _to_jpeg(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=92)
    return buf.getvalue()


def layout_pages(panels: List[Panel], aspect_ratio: AspectRatio) -> List[PageLayout]:
    """
    One page per panel: label, image scaled into the content box, wrapped caption, wrapped dialogue.
    Text that would run past the bottom margin continues on a "(cont.)" page.
    """
    page_w, page_h = page_size(aspect_ratio)
    content_w = page_w - 2 * MARGIN
    box_h = page_h * 0.65 - MARGIN
    bottom = page_h - MARGIN - 10

    measure = FPDF(unit="mm", format="A4")
    measure.add_page()

    pages: List[PageLayout] = []
    for panel in panels:
        page = PageLayout(label=f"Panel {panel.index}")
        pages.append(page)
        text_y = MARGIN + 35

        if panel.image is not None:
            try:
                img = panel.image.to_pil()
                w, h = fit_image(img.width, img.height, content_w, box_h)
                page.image = ImagePlacement(x=(page_w - w) / 2, y=MARGIN + 10, w=w, h=h, jpeg=_to_jpeg(img))
                text_y = MARGIN + 10 + h + 10
            except (OSError, ValueError) as e:
                logger.error("Error processing image for PDF for panel %d: %s", panel.index, e)
                page.lines.append(TextLine(y=MARGIN + 20, text="Error loading image for this panel.", size=12, color=(255, 0, 0)))
        else:
            notice = "Image generation failed for this panel." if panel.error else "Image not available for this panel."
            page.lines.append(TextLine(y=MARGIN + 20, text=notice, size=12, color=(255, 0, 0)))

        blocks = []
        if panel.caption:
            blocks.append((f"Caption: {panel.caption}", 12, (0, 0, 0), 5, 5))
        for dialogue in panel.dialogues:
            blocks.append((dialogue, 10, (50, 50, 50), 4, 2))

        for text, size, color, line_h, gap in blocks:
            measure.set_font(FONT, size=size)
            for line in _wrap(measure, _latin1(text), content_w):
                if text_y > bottom:
                    page = PageLayout(label=f"Panel {panel.index} (cont.)")
                    pages.append(page)
                    text_y = MARGIN + 10
                page.lines.append(TextLine(y=text_y, text=line, size=size, color=color))
                text_y += line_h
            text_y += gap

    return pages


def build_pdf(pages: List[PageLayout], aspect_ratio: AspectRatio) -> FPDF:
    orientation = "L" if aspect_ratio == AspectRatio.LANDSCAPE else "P"
    pdf = FPDF(orientation=orientation, unit="mm", format="A4")
    pdf.set_auto_page_break(auto=False)

    for page in pages:
        pdf.add_page()
        label_y = MARGIN if page.label.endswith("(cont.)") else MARGIN + 5
        pdf.set_font(FONT, size=10)
        pdf.set_text_color(100)
        pdf.text(MARGIN, label_y, _latin1(page.label))

        if page.image is not None:
            p = page.image
            pdf.image(io.BytesIO(p.jpeg), x=p.x, y=p.y, w=p.w, h=p.h)

        for line in page.lines:
            pdf.set_font(FONT, size=line.size)
            pdf.set_text_color(*line.color)
            pdf.text(MARGIN, line.y, line.text)

    return pdf


def make_pdf_bytes(panels: List[Panel], aspect_ratio: AspectRatio) -> bytes:
    return bytes(build_pdf(layout_pages(panels, aspect_ratio), aspect_ratio).output())
