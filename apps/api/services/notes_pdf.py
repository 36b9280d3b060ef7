"""
Study notes PDF export with ReportLab.

Layout: a header block (title, video title, generation date, video id)
followed by the notes, with light Markdown support (headings, bold lines,
bullets, numbered items, paragraphs). Every page carries a diagonal
"Zentube <year>" watermark for the generation year.
"""
import io
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import partial
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

logger = logging.getLogger(__name__)

WATERMARK_BRAND = "Zentube"
WATERMARK_COLOR = HexColor("#E6E6E6")
COLOR_DARK = HexColor("#111827")
COLOR_GRAY = HexColor("#6b7280")

_NUMBERED_RE = re.compile(r"^\d+\.\s")
_INLINE_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_FILENAME_STRIP_RE = re.compile(r"[^a-zA-Z0-9\s]")


@dataclass
class NotesBlock:
    kind: str       # h1 | h2 | h3 | bold | bullet | numbered | paragraph | blank
    text: str = ""


def parse_markdown_blocks(notes: str) -> List[NotesBlock]:
    """Classify each line of Markdown notes into a block type."""
    blocks: List[NotesBlock] = []
    for raw in (notes or "").split("\n"):
        line = raw.strip()
        if not line:
            blocks.append(NotesBlock("blank"))
        elif line.startswith("### "):
            blocks.append(NotesBlock("h3", line[4:]))
        elif line.startswith("## "):
            blocks.append(NotesBlock("h2", line[3:]))
        elif line.startswith("# "):
            blocks.append(NotesBlock("h1", line[2:]))
        elif len(line) > 4 and line.startswith("**") and line.endswith("**"):
            blocks.append(NotesBlock("bold", line[2:-2]))
        elif line.startswith("- ") or line.startswith("* "):
            blocks.append(NotesBlock("bullet", line[2:]))
        elif _NUMBERED_RE.match(line):
            blocks.append(NotesBlock("numbered", line))
        else:
            blocks.append(NotesBlock("paragraph", line))
    return blocks


def notes_pdf_filename(title: Optional[str], on: Optional[date] = None) -> str:
    """``<Title_With_Underscores>_<YYYY-MM-DD>.pdf``, title limited to 50 characters."""
    on = on or datetime.now(timezone.utc).date()
    if title:
        sanitized = _FILENAME_STRIP_RE.sub("", title)
        sanitized = re.sub(r"\s+", "_", sanitized)[:50]
    else:
        sanitized = ""
    return f"{sanitized or 'study_notes'}_{on.isoformat()}.pdf"


def _inline(text: str) -> str:
    # Paragraph takes a mini-markup; escape first, then restore **bold**
    return _INLINE_BOLD_RE.sub(r"<b>\1</b>", escape(text))


def watermark_text(generated_on: date) -> str:
    return f"{WATERMARK_BRAND} {generated_on.year}"


def _draw_watermark(canvas, doc, text: str = WATERMARK_BRAND) -> None:
    width, height = doc.pagesize
    canvas.saveState()
    canvas.setFont("Helvetica-Bold", 60)
    canvas.setFillColor(WATERMARK_COLOR)
    canvas.translate(width / 2, height / 2)
    canvas.rotate(45)
    canvas.drawCentredString(0, 0, text)
    canvas.restoreState()


def render_notes_pdf(
    notes: str,
    title: Optional[str] = None,
    video_id: Optional[str] = None,
    generated_on: Optional[date] = None,
) -> bytes:
    """
    Render Markdown study notes to PDF bytes.

    Args:
        notes: Markdown produced by the notes generator
        title: video title shown under the heading
        video_id: YouTube video id, printed on the title block
        generated_on: date printed as "Generated on", defaults to today (UTC)

    Returns:
        PDF in bytes
    """
    generated_on = generated_on or datetime.now(timezone.utc).date()
    buffer = io.BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=56,
        leftMargin=56,
        topMargin=56,
        bottomMargin=56,
        title=f"Study Notes - {title}" if title else "Study Notes",
    )

    styles = getSampleStyleSheet()
    body = ParagraphStyle("NotesBody", parent=styles["BodyText"], fontSize=10, leading=14, textColor=COLOR_DARK)
    block_styles = {
        "h1": ParagraphStyle("NotesH1", parent=styles["Heading1"], fontSize=18, leading=22, spaceBefore=10, spaceAfter=8),
        "h2": ParagraphStyle("NotesH2", parent=styles["Heading2"], fontSize=14, leading=18, spaceBefore=8, spaceAfter=6),
        "h3": ParagraphStyle("NotesH3", parent=styles["Heading3"], fontSize=12, leading=15, spaceBefore=6, spaceAfter=4),
        "bold": ParagraphStyle("NotesBold", parent=body, fontName="Helvetica-Bold", fontSize=11, spaceAfter=4),
        "bullet": ParagraphStyle("NotesBullet", parent=body, leftIndent=14, bulletIndent=4, spaceAfter=3),
        "numbered": ParagraphStyle("NotesNumbered", parent=body, leftIndent=14, spaceAfter=3),
        "paragraph": ParagraphStyle("NotesParagraph", parent=body, spaceAfter=3),
    }

    elements = [
        Paragraph("Study Notes", ParagraphStyle("NotesTitle", parent=styles["Title"], fontSize=20, alignment=0)),
        Spacer(1, 8),
    ]
    if title:
        elements.append(Paragraph(escape(title), ParagraphStyle("NotesVideoTitle", parent=body, fontSize=16, leading=20)))
        elements.append(Spacer(1, 12))

    meta = ParagraphStyle("NotesMeta", parent=body, fontSize=12, leading=16, textColor=COLOR_GRAY)
    elements.append(Paragraph(f"Generated on: {generated_on.isoformat()}", meta))
    elements.append(Paragraph(f"Video ID: {escape(video_id or 'N/A')}", meta))
    elements.append(Spacer(1, 20))

    for block in parse_markdown_blocks(notes):
        if block.kind == "blank":
            elements.append(Spacer(1, 5))
        elif block.kind == "bullet":
            elements.append(Paragraph(_inline(block.text), block_styles["bullet"], bulletText="•"))
        elif block.kind in ("h1", "h2", "h3", "bold"):
            elements.append(Paragraph(escape(block.text), block_styles[block.kind]))
        else:
            elements.append(Paragraph(_inline(block.text), block_styles[block.kind]))

    watermark = partial(_draw_watermark, text=watermark_text(generated_on))
    doc.build(elements, onFirstPage=watermark, onLaterPages=watermark)

    pdf = buffer.getvalue()
    logger.info(
        "Rendered study notes PDF",
        extra={"extra_fields": {"video_id": video_id, "bytes": len(pdf), "pages": doc.page}},
    )
    return pdf
