"""
Demand Letter Document
Builds the exported Word document, either as a regular letter or on
numbered pleading paper.

The letter is first laid out as a flat list of blocks (one per paragraph),
then rendered either as document paragraphs or as rows of a two-column
table whose left column carries the line numbers.
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from docx import Document as DocxDocument
from docx.enum.table import WD_CELL_VERTICAL_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt

from ..models import (
    LegacyDamages,
    MultiPersonDamages,
    coerce_amount,
    parse_damages,
)

logger = logging.getLogger(__name__)

# Half-point sizes, as Word stores them
FONT_SIZES = {
    'SMALL': 16,
    'REGULAR': 18,
    'LARGE': 20,
    'SECTION': 22,
    'TITLE': 24,
}

# Twentieths of a point
SPACING = {
    'SMALL': 100,
    'REGULAR': 150,
    'LARGE': 200,
    'XLARGE': 300,
}

LINE_LENGTH_LIMIT = 58

DOCX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'

# Keys of the analysis that are not letter sections
NON_SECTION_KEYS = {'clientInfo'}


@dataclass
class Block:
    """One paragraph of the letter."""
    text: str = ''
    bold: bool = False
    size: int = FONT_SIZES['LARGE']
    align: str = 'left'
    space_before: int = 0
    space_after: int = 0
    heading: bool = False
    images: List[bytes] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def format_amount(value: Any) -> str:
    """1234.5 -> '1,234.5', 300000 -> '300,000'"""
    amount = coerce_amount(value)
    if amount.is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}".rstrip('0').rstrip('.')


def format_section_title(key: str) -> str:
    """'natureOfClaim' -> 'Nature Of Claim'"""
    spaced = re.sub(r'([A-Z])', r' \1', key).strip()
    return spaced[:1].upper() + spaced[1:]


def wrap_text_to_lines(text: str, max_length: int = LINE_LENGTH_LIMIT) -> List[str]:
    """Greedy word wrap. A word longer than the width gets a line of its own."""
    lines = []
    current = ''
    for word in text.split():
        if len(current + ' ' + word) > max_length:
            if current:
                lines.append(current.strip())
                current = word
            else:
                lines.append(word)
        else:
            current += (' ' if current else '') + word
    if current:
        lines.append(current.strip())
    return lines


def format_pleading_lines(text_lines: List[str], width: int = LINE_LENGTH_LIMIT) -> List[str]:
    """
    Number every line for pleading paper.

    Long lines are wrapped first; blank lines keep their number. Every output
    line is `"{n:>3}  |  {content:<width}  |"`.
    """
    numbered = []
    line_number = 1
    for line in text_lines:
        line = (line or '').strip()
        wrapped = wrap_text_to_lines(line, width) if line else ['']
        for content in wrapped:
            numbered.append(f"{line_number:>3}  |  {content:<{width}}  |")
            line_number += 1
    return numbered


def decode_image(data: str) -> Optional[bytes]:
    payload = re.sub(r'^data:image/\w+;base64,', '', data or '')
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Skipping exhibit image that is not valid base64: {e}")
        return None


# ---------------------------------------------------------------------------
# Damages
# ---------------------------------------------------------------------------

def damages_blocks(damages) -> List[Block]:
    """Lines for the damages section, one layout per damages variant."""
    size = FONT_SIZES['LARGE']
    small, regular = SPACING['SMALL'], SPACING['REGULAR']
    blocks = []

    if isinstance(damages, MultiPersonDamages):
        blocks.append(Block(
            f"Based on the foregoing, we demand payment in the amount of "
            f"${format_amount(damages.total_settlement_demand)} to settle claims arising from this "
            f"incident. Please contact the undersigned to discuss settlement within thirty (30) "
            f"days of receipt of this letter.",
            size=size, space_after=SPACING['LARGE'],
        ))
        for person in damages.people:
            special = person.special_damages
            if special:
                blocks.append(Block(
                    f"• Special Damages for {person.name} (Past Medical Expenses): "
                    f"${format_amount(special.total)}",
                    bold=True, size=size, space_after=small,
                ))
                for item in special.items:
                    blocks.append(Block(f"  ○ {item.description} ${format_amount(item.amount)}",
                                        size=size, space_after=small))
                blocks.append(Block(f"  ○ Total (Actual Past Bills) ${format_amount(special.total)}",
                                    size=size, space_after=regular))

            future = person.future_medical_expenses
            if future:
                blocks.append(Block(
                    f"• Future Medical Expenses for {person.name}: ${format_amount(future.total)}",
                    bold=True, size=size, space_after=small,
                ))
                for index, item in enumerate(future.items):
                    blocks.append(Block(f"  {chr(97 + index)}. {item.description}: ${format_amount(item.amount)}",
                                        size=size, space_after=small))
                blocks.append(Block(size=size, space_after=regular))

            general = person.general_damages
            if general:
                blocks.append(Block(
                    f"• General Damages for {person.name} (Pain, Suffering, & Loss of Enjoyment): "
                    f"${format_amount(general.total)}",
                    bold=True, size=size, space_after=small,
                ))
                for index, item in enumerate(general.items):
                    blocks.append(Block(f"  {chr(97 + index)}. {item}", size=size, space_after=small))

        blocks.append(Block(
            f"Total Settlement Demand: ${format_amount(damages.total_settlement_demand)}",
            bold=True, size=size, space_after=SPACING['LARGE'],
        ))
        return blocks

    if isinstance(damages, LegacyDamages):
        if damages.special_damages:
            special = damages.special_damages
            blocks.append(Block(f"1.  Special Damages – ${format_amount(special.total)}",
                                bold=True, size=size, space_after=small))
            for item in special.items:
                blocks.append(Block(f"     ○  {item.description}: ${format_amount(item.amount)}",
                                    size=size, space_after=small))
            blocks.append(Block(f"     ○  Total Past Medical Expenses: ${format_amount(special.total)}",
                                size=size, space_after=regular))
        if damages.future_medical_expenses:
            future = damages.future_medical_expenses
            blocks.append(Block(f"2.  Future Medical Expenses – ${format_amount(future.total)}",
                                bold=True, size=size, space_after=small))
            for index, item in enumerate(future.items):
                blocks.append(Block(f"     {chr(97 + index)}.  {item.description}: ${format_amount(item.amount)}",
                                    size=size, space_after=small))
            blocks.append(Block(size=size, space_after=regular))
        if damages.general_damages:
            general = damages.general_damages
            blocks.append(Block(f"3.  General Damages – ${format_amount(general.total)}",
                                bold=True, size=size, space_after=small))
            for index, item in enumerate(general.items):
                blocks.append(Block(f"     {chr(97 + index)}.  {item}", size=size, space_after=small))
        return blocks

    raise TypeError(f"Unknown damages variant: {type(damages).__name__}")


# ---------------------------------------------------------------------------
# Letter layout
# ---------------------------------------------------------------------------

class LetterDocumentBuilder:
    """Lays out and renders one demand letter."""

    def __init__(self, letter_data: Dict, exhibits: Optional[List[Dict]] = None, today: Optional[date] = None):
        self.letter = letter_data or {}
        self.exhibits = exhibits or []
        self.today = today or date.today()

        self.attorney = self.letter.get('attorney') or {}
        self.insurer = self.letter.get('insuranceCompany') or {}
        self.case_info = self.letter.get('caseInfo') or {}
        self.total_medical = coerce_amount(self.letter.get('totalMedicalExpenses'))

    @property
    def client_name(self) -> str:
        return self.case_info.get('client') or ''

    def section_source(self) -> Dict:
        api_data = self.letter.get('apiData') or {}
        return api_data.get('globalAnalysis') or self.letter.get('suggestedContent') or {}

    def opening_paragraph(self) -> str:
        return self.letter.get('openingParagraph') or (
            f"This letter serves as formal notice of our policy limit demand on behalf of our client, "
            f"{self.client_name}, arising from the motor vehicle accident that occurred on "
            f"{self.case_info.get('dateOfLoss') or ''}."
        )

    # ------------------------------------------------------------------

    def header_blocks(self) -> List[Block]:
        size, small = FONT_SIZES['LARGE'], SPACING['SMALL']
        attorney = self.attorney
        blocks = [
            Block(attorney.get('name') or '[Attorney Name]', bold=True, size=FONT_SIZES['TITLE'],
                  align='center', space_after=small),
            Block(attorney.get('title') or '[Attorney Title]', size=size, align='center', space_after=small),
            Block(attorney.get('specialization') or '[Specialization]', size=size, align='center',
                  space_after=small),
            Block(attorney.get('address') or '[Attorney Address]', size=size, align='center', space_after=small),
            Block(f"TEL: {attorney.get('phone') or '[Phone]'} | FAX: {attorney.get('fax') or '[Fax]'}",
                  size=size, align='center', space_after=SPACING['LARGE']),
            Block(f"{self.today:%B} {self.today.day}, {self.today.year}", size=size, align='right',
                  space_after=SPACING['LARGE']),
            Block(self.insurer.get('name') or '', bold=True, size=size, space_after=small),
            Block(self.insurer.get('address') or '', size=size, space_after=small),
            Block(f"Attention: {self.insurer.get('attention') or ''}", size=size, space_after=SPACING['LARGE']),
            Block(f"Re: {self.client_name}", bold=True, size=size, space_after=small),
            Block(f"Date of Loss: {self.case_info.get('dateOfLoss') or ''}", size=size, space_after=small),
        ]
        if self.case_info.get('policyNumber'):
            blocks.append(Block(f"Policy Number: {self.case_info['policyNumber']}", size=size, space_after=small))
        if self.case_info.get('claimNumber'):
            blocks.append(Block(f"Claim Number: {self.case_info['claimNumber']}", size=size, space_after=small))

        blocks.append(Block('DEMAND FOR SETTLEMENT', bold=True, size=FONT_SIZES['TITLE'], align='center',
                            space_before=small, space_after=SPACING['XLARGE']))
        blocks.append(Block('Dear Claims Representative:', size=size, space_after=SPACING['LARGE']))
        blocks.append(Block(self.opening_paragraph(), size=size, space_after=SPACING['XLARGE']))
        return blocks

    def section_blocks(self) -> List[Block]:
        blocks = []
        size = FONT_SIZES['LARGE']
        for key, content in self.section_source().items():
            if key in NON_SECTION_KEYS or content is None or content == '' or content == []:
                continue

            if key == 'damages':
                rendered = damages_blocks(parse_damages(content, self.total_medical))
            elif isinstance(content, list):
                rendered = [Block(f"• {item}", size=size, space_after=SPACING['REGULAR'])
                            for item in content if str(item).strip()]
            elif isinstance(content, str):
                rendered = [Block(para.strip(), size=size, space_after=SPACING['REGULAR'])
                            for para in content.split('\n') if para.strip()]
            else:
                logger.debug(f"Skipping section {key!r} with unsupported content")
                continue

            blocks.append(self._section_title(format_section_title(key).upper()))
            blocks.extend(rendered)
        return blocks

    def exhibit_blocks(self) -> List[Block]:
        if not self.exhibits:
            return []
        size = FONT_SIZES['LARGE']
        blocks = [self._section_title('EXHIBITS')]
        for exhibit in self.exhibits:
            blocks.append(Block(exhibit.get('heading') or '', bold=True, size=size,
                                space_before=SPACING['LARGE'], space_after=SPACING['SMALL']))
            images = [img for img in (decode_image(i) for i in exhibit.get('images') or []) if img]
            blocks.append(Block(exhibit.get('summary') or '', size=size, space_after=SPACING['LARGE'], images=images))
        return blocks

    def demand_amount(self) -> float:
        """
        Amount demanded in the closing.

        Multi-person damages demand their settlement total, legacy damages their
        special damages total. Without either (or when it is zero), the total
        medical expenses.
        """
        content = self.section_source().get('damages')
        if content is None or content == '' or content == []:
            return self.total_medical

        damages = parse_damages(content, self.total_medical)
        if isinstance(damages, MultiPersonDamages):
            return damages.total_settlement_demand or self.total_medical
        if damages.special_damages and damages.special_damages.total:
            return damages.special_damages.total
        return self.total_medical

    def closing_blocks(self) -> List[Block]:
        size = FONT_SIZES['LARGE']
        return [
            self._section_title('DEMAND'),
            Block(
                f"Based on the foregoing, we demand payment in the amount of ${format_amount(self.demand_amount())} "
                f"to settle claims arising from this incident. Please contact the undersigned to discuss "
                f"settlement within thirty (30) days of receipt of this letter.",
                size=size, space_after=SPACING['XLARGE'],
            ),
            Block('Sincerely,', size=size, space_after=SPACING['LARGE']),
            Block(self.attorney.get('name') or '', bold=True, size=size, space_after=SPACING['SMALL']),
            Block(self.attorney.get('title') or '', size=size),
        ]

    def blocks(self) -> List[Block]:
        return self.header_blocks() + self.section_blocks() + self.exhibit_blocks() + self.closing_blocks()

    @staticmethod
    def _section_title(text: str) -> Block:
        return Block(text, bold=True, size=FONT_SIZES['SECTION'], heading=True,
                     space_before=SPACING['XLARGE'], space_after=SPACING['LARGE'])

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def build(self, pleading_paper: bool = False):
        doc = DocxDocument()
        style = doc.styles['Normal']
        style.font.name = 'Times New Roman'
        style.font.size = Pt(FONT_SIZES['LARGE'] / 2)

        if pleading_paper:
            self._render_pleading(doc, self.blocks())
        else:
            for block in self.blocks():
                self._fill_paragraph(doc.add_paragraph(), block)
        return doc

    def to_bytes(self, pleading_paper: bool = False) -> bytes:
        buffer = io.BytesIO()
        self.build(pleading_paper).save(buffer)
        return buffer.getvalue()

    def pleading_text(self) -> str:
        """Plain-text pleading paper: fixed-width, every line numbered."""
        lines = []
        for block in self.blocks():
            if block.space_before:
                lines.append('')
            lines.append(block.text)
        return '\n'.join(format_pleading_lines(lines)) + '\n'

    def download_name(self, pleading_paper: bool = False, extension: str = 'docx') -> str:
        client = re.sub(r'[^\w\-]+', '_', self.client_name).strip('_') or 'draft'
        prefix = 'Demand_Letter_Pleading' if pleading_paper else 'Demand_Letter'
        return f"{prefix}_{client}.{extension}"

    def _render_pleading(self, doc, blocks: List[Block]):
        table = doc.add_table(rows=0, cols=2)
        table.autofit = False
        for line_number, block in enumerate(blocks, 1):
            row = table.add_row()
            _prevent_row_split(row)
            number_cell, content_cell = row.cells
            number_cell.width = Inches(0.3)
            content_cell.width = Inches(6.2)

            number_paragraph = number_cell.paragraphs[0]
            number_paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            number_run = number_paragraph.add_run(str(line_number))
            number_run.font.size = Pt(FONT_SIZES['SMALL'] / 2)

            self._fill_paragraph(content_cell.paragraphs[0], block)
            for cell in (number_cell, content_cell):
                cell.vertical_alignment = WD_CELL_VERTICAL_ALIGNMENT.TOP
                _set_cell_borders(cell, right={'val': 'single', 'sz': '6', 'color': '000000'})

    @staticmethod
    def _fill_paragraph(paragraph, block: Block):
        if block.heading:
            paragraph.style = 'Heading 2'
        paragraph.alignment = {
            'center': WD_ALIGN_PARAGRAPH.CENTER,
            'right': WD_ALIGN_PARAGRAPH.RIGHT,
        }.get(block.align, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.paragraph_format.space_before = Pt(block.space_before / 20)
        paragraph.paragraph_format.space_after = Pt(block.space_after / 20)

        if block.text:
            run = paragraph.add_run(block.text)
            run.bold = block.bold
            run.font.size = Pt(block.size / 2)
        for image in block.images:
            paragraph.add_run().add_break()
            paragraph.add_run().add_picture(io.BytesIO(image), width=Inches(5))


# ---------------------------------------------------------------------------
# Table XML helpers (python-docx has no API for these)
# ---------------------------------------------------------------------------

def _set_cell_borders(cell, **edges):
    tc_pr = cell._tc.get_or_add_tcPr()
    borders = tc_pr.find(qn('w:tcBorders'))
    if borders is None:
        borders = OxmlElement('w:tcBorders')
        tc_pr.append(borders)
    for edge in ('top', 'left', 'bottom', 'right'):
        element = OxmlElement(f'w:{edge}')
        attrs = edges.get(edge, {'val': 'nil'})
        for name, value in attrs.items():
            element.set(qn(f'w:{name}'), value)
        borders.append(element)


def _prevent_row_split(row):
    tr_pr = row._tr.get_or_add_trPr()
    cant_split = OxmlElement('w:cantSplit')
    tr_pr.append(cant_split)
