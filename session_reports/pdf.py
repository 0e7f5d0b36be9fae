from __future__ import annotations  # Styled PDF rendering for performance reports

from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from session_store import TranscriptMessage

from .models import CardMetric, QAItem, Report

DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background
ROW_FILL = (247, 250, 255)  # Alternating table row


def _format_datetime(value: datetime | None) -> str:  # Format timestamp for display
    if not value:
        return "-"
    return value.strftime("%d %b %Y, %I:%M %p").lstrip("0").replace(" 0", " ")


def _effective_width(pdf: FPDF) -> float:  # Compute effective page width
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _score_value(value: float) -> str:
    return f"{value:.1f}/10"


class ReportPDF(FPDF):  # PDF with custom header/footer styling
    def __init__(self, *args, accent: Tuple[int, int, int] = ACCENT, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.accent = accent
        self.header_title = "Performance Report"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_system_fonts(self) -> None:  # Switch to DejaVu when it is installed
        if not (Path(DEJAVU_SANS).is_file() and Path(DEJAVU_SANS_BOLD).is_file()):
            return
        self.add_font("DejaVu", "", DEJAVU_SANS)
        self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True

    def prepare_text(self, text: object) -> str:  # Sanitize text for core fonts
        value = "" if text is None else str(text)
        if self.supports_unicode:
            return value
        cleaned = value.replace("•", "-").replace("’", "'").replace("—", "-")
        return cleaned.encode("latin-1", "ignore").decode("latin-1")

    @property
    def bullet(self) -> str:
        return "•" if self.supports_unicode else "-"

    def header(self) -> None:  # Render header banner
        usable = _effective_width(self)
        title = self.prepare_text(self.header_title)
        if self.page_no() == 1:
            line_height = 8
            self.set_font(self.font_bold, "B", 16)
            lines = self.multi_cell(usable, line_height, title, dry_run=True, output="LINES")
            banner = 6 + max(1, len(lines)) * line_height + 4
            self.set_fill_color(*self.accent)
            self.rect(0, 0, self.w, banner, style="F")
            self.set_text_color(255, 255, 255)
            self.set_xy(self.l_margin, 6)
            self.multi_cell(usable, line_height, title)
            self.set_text_color(*TEXT)
            self.ln(4)
        else:
            self.set_text_color(80, 80, 80)
            self.set_xy(self.l_margin, 8)
            self.set_font(self.font_bold, "B", 12)
            self.multi_cell(usable, 6, title)
            mark = self.get_y()
            self.set_draw_color(*self.accent)
            self.set_line_width(0.4)
            self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
            self.set_text_color(*TEXT)
            self.ln(4)

    def footer(self) -> None:  # Render footer with pagination
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _paragraph(pdf: ReportPDF, text: str, *, size: int = 11, color: Tuple[int, int, int] = TEXT) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*color)
    pdf.set_font(pdf.font_regular, "", size)
    pdf.multi_cell(_effective_width(pdf), 6, pdf.prepare_text(text))
    pdf.set_text_color(*TEXT)


def _section_title(pdf: ReportPDF, title: str) -> None:  # Render styled section title
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, pdf.prepare_text(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _meta_block(pdf: ReportPDF, rows: List[Tuple[str, str]]) -> None:  # Draw two-column metadata
    col = _effective_width(pdf) / 2.0
    line = 6
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, line, pdf.prepare_text(left[0]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, pdf.prepare_text(right[0]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, line, pdf.prepare_text(left[1]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, pdf.prepare_text(right[1]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _table_header(pdf: ReportPDF, headers: Sequence[str], widths: Sequence[float]) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_fill_color(*ACCENT)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font(pdf.font_bold, "B", 10)
    for title, width in zip(headers, widths):
        pdf.cell(width, 8, title, align="L", fill=True)
    pdf.ln(8)
    pdf.set_text_color(*TEXT)


def _render_card_table(pdf: ReportPDF, cards: Sequence[CardMetric]) -> None:  # Draw competency card scores
    total = _effective_width(pdf)
    widths = [total * 0.28, total * 0.14, total * 0.58]
    _table_header(pdf, ["Competency", "Score", "Notes"], widths)
    pdf.set_font(pdf.font_regular, "", 10)
    for idx, card in enumerate(cards):
        fill = idx % 2 == 0
        if fill:
            pdf.set_fill_color(*ROW_FILL)
        pdf.set_x(pdf.l_margin)
        pdf.cell(widths[0], 7, pdf.prepare_text(card.name), fill=fill)
        pdf.cell(widths[1], 7, _score_value(card.score), fill=fill)
        pdf.multi_cell(widths[2], 7, pdf.prepare_text(card.text), fill=fill, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _render_score_banner(pdf: ReportPDF, report: Report) -> None:  # Highlighted fit verdict
    width = _effective_width(pdf)
    top = pdf.get_y()
    pdf.set_fill_color(*SOFT_ACCENT_BG)
    pdf.rect(pdf.l_margin, top, width, 16, style="F")
    pdf.set_xy(pdf.l_margin + 6, top + 4)
    pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.cell(width - 12, 8, pdf.prepare_text(report.meta.fit_label))
    pdf.set_xy(pdf.l_margin, top + 4)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 14)
    pdf.cell(width - 6, 8, _score_value(report.meta.fit_score), align="R")
    pdf.set_y(top + 20)
    pdf.set_text_color(*TEXT)


def _render_qa(pdf: ReportPDF, items: Sequence[QAItem]) -> None:
    if not items:
        _paragraph(pdf, "No answered exchanges recorded for this session.", size=10, color=MUTED)
        pdf.ln(2)
        return
    width = _effective_width(pdf)
    for item in items:
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*ACCENT)
        pdf.set_font(pdf.font_bold, "B", 10)
        pdf.multi_cell(width, 5.5, pdf.prepare_text(f"Q: {item.question}"))
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(60, 60, 60)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.multi_cell(width, 5.5, pdf.prepare_text(f"A: {item.answer}"))
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 9)
        pdf.multi_cell(width, 5.5, pdf.prepare_text(f"{pdf.bullet} {_score_value(item.score)} {item.feedback}"))
        pdf.ln(2)
    pdf.set_text_color(*TEXT)


def _render_transcript(pdf: ReportPDF, transcript: Sequence[TranscriptMessage], counterpart: str) -> None:
    width = _effective_width(pdf)
    for message in transcript:
        speaker = "You" if message.role == "user" else counterpart
        pdf.set_x(pdf.l_margin)
        pdf.set_font(pdf.font_bold, "B", 10)
        pdf.set_text_color(*(ACCENT if message.role == "assistant" else TEXT))
        pdf.multi_cell(width, 5.5, pdf.prepare_text(f"{speaker}: {message.content}"))
    pdf.set_text_color(*TEXT)
    pdf.ln(2)


def render_report_pdf(report: Report, *, counterpart: str = "Partner") -> bytes:  # Build PDF payload for a report
    pdf = ReportPDF()
    pdf.alias_nb_pages()
    pdf.use_system_fonts()
    pdf.header_title = f"{report.scenario} - Performance Report"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Session Overview")
    _meta_block(
        pdf,
        [
            ("Session ID", report.session_id),
            ("Generated", _format_datetime(report.generated_at)),
            ("Fit Score", _score_value(report.meta.fit_score)),
            ("Potential", _score_value(report.meta.potential_score)),
        ],
    )
    _render_score_banner(pdf, report)
    _paragraph(pdf, report.meta.summary)
    pdf.ln(2)

    _section_title(pdf, "Strengths & Growth Areas")
    sidebar = report.sidebar_data
    for label, values in (
        ("Top traits", sidebar.top_traits),
        ("Improvements", sidebar.improvements),
        ("Motivators", sidebar.motivators),
        ("Derailers", sidebar.derailers),
    ):
        _paragraph(pdf, f"{pdf.bullet} {label}: {', '.join(values) or '-'}")
    pdf.ln(2)

    _section_title(pdf, "Functional Competencies")
    _render_card_table(pdf, report.functional_cards)
    _section_title(pdf, "Behavioral Competencies")
    _render_card_table(pdf, report.behavioral_cards)

    _section_title(pdf, "Conversation Analysis")
    _paragraph(pdf, report.conversation_analysis.analysis_text)
    for metric in report.conversation_analysis.metrics:
        _paragraph(pdf, f"{pdf.bullet} {metric.label}: {_score_value(metric.score)}")
    pdf.ln(2)

    rewrite = report.coach_rewrite_card
    _section_title(pdf, rewrite.title)
    _paragraph(pdf, rewrite.context, size=10, color=MUTED)
    _paragraph(pdf, f"You said: {rewrite.original_user_response}")
    _paragraph(pdf, f"Try: {rewrite.pro_rewrite}")
    _paragraph(pdf, rewrite.why_it_works, size=10, color=MUTED)
    pdf.ln(2)

    plan = report.learning_plan
    _section_title(pdf, "Learning Plan")
    _paragraph(pdf, f"{pdf.bullet} Priority focus: {plan.priority_focus}")
    _paragraph(pdf, f"{pdf.bullet} Recommended drill: {plan.recommended_drill}")
    _paragraph(pdf, f"{pdf.bullet} Suggested reading: {plan.suggested_reading}")
    pdf.ln(2)

    _section_title(pdf, "Question & Answer Review")
    _render_qa(pdf, report.qa_analysis)

    _section_title(pdf, "Transcript")
    _render_transcript(pdf, report.transcript, counterpart)

    return bytes(pdf.output())


__all__ = ["ReportPDF", "render_report_pdf"]
