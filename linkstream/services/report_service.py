"""PDF report of a processed backup."""

import io
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def _styles():
    base_styles = getSampleStyleSheet()
    return {
        'pdfTitle': ParagraphStyle(
            'PdfTitle',
            parent=base_styles['Heading1'],
            fontName='Helvetica-Bold',
            fontSize=17,
            leading=21,
            spaceAfter=6,
            textColor=colors.HexColor('#0A66C2'),
        ),
        'pdfMeta': ParagraphStyle(
            'PdfMeta',
            parent=base_styles['BodyText'],
            fontName='Helvetica',
            fontSize=9.5,
            leading=12.5,
            textColor=colors.HexColor('#4B5563'),
        ),
        'pdfSection': ParagraphStyle(
            'PdfSection',
            parent=base_styles['Heading2'],
            fontName='Helvetica-Bold',
            fontSize=12.5,
            leading=16,
            spaceBefore=6,
            spaceAfter=6,
            textColor=colors.HexColor('#111827'),
        ),
        'pdfBody': ParagraphStyle(
            'PdfBody',
            parent=base_styles['BodyText'],
            fontName='Helvetica',
            fontSize=10,
            leading=14,
            textColor=colors.HexColor('#1F2937'),
        ),
    }


def _format_ts(value):
    if not isinstance(value, (int, float)) or not value:
        return '-'
    return datetime.fromtimestamp(float(value), tz=timezone.utc).strftime('%Y-%m-%d %H:%M UTC')


def _count_table(rows, styles, label):
    table_rows = [[Paragraph(f'<b>{label}</b>', styles['pdfMeta']), Paragraph('<b>Count</b>', styles['pdfMeta'])]]
    for name, count in rows:
        table_rows.append([Paragraph(escape(str(name)), styles['pdfBody']), Paragraph(f"{int(count or 0):,}", styles['pdfBody'])])
    table = Table(table_rows, colWidths=[130 * mm, 40 * mm], repeatRows=1, hAlign='LEFT')
    table.setStyle(TableStyle([
        ('GRID', (0, 0), (-1, -1), 0.35, colors.HexColor('#D1D5DB')),
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#F3F4F6')),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 5),
        ('RIGHTPADDING', (0, 0), (-1, -1), 5),
    ]))
    return table


def build_backup_report_pdf(backup):
    """Render stats, insights and summary of ``backup`` and return PDF bytes."""
    pdf_buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        pdf_buffer,
        pagesize=A4,
        leftMargin=16 * mm,
        rightMargin=16 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title='LinkedIn Network Report',
    )
    styles = _styles()
    story = [Paragraph('LinkedIn Network Report', styles['pdfTitle'])]
    metadata = backup.get('metadata', {}) or {}
    story.append(Paragraph(
        f"Backup {escape(str(backup.get('backupId', '')))} &middot; {escape(str(metadata.get('fileName', '') or '-'))} "
        f"&middot; processed {_format_ts(backup.get('processedAt'))}",
        styles['pdfMeta'],
    ))
    story.append(Spacer(1, 10))

    stats = backup.get('stats', {}) or {}
    story.append(Paragraph('Network Statistics', styles['pdfSection']))
    story.append(_count_table([(key.capitalize(), value) for key, value in stats.items()], styles, 'Metric'))
    story.append(Spacer(1, 10))

    story.append(Paragraph('Insights', styles['pdfSection']))
    insights = backup.get('insights', []) or []
    if insights:
        for line in insights:
            story.append(Paragraph(f"&bull; {escape(str(line))}", styles['pdfBody']))
            story.append(Spacer(1, 2))
    else:
        story.append(Paragraph('No insights available.', styles['pdfBody']))
    story.append(Spacer(1, 10))

    top_companies = (backup.get('analytics', {}) or {}).get('topCompanies', {}) or {}
    if top_companies:
        story.append(Paragraph('Top Companies', styles['pdfSection']))
        story.append(_count_table(list(top_companies.items()), styles, 'Company'))
        story.append(Spacer(1, 10))

    summary = str(backup.get('summary', '') or '').strip()
    if summary:
        story.append(Paragraph('AI Summary', styles['pdfSection']))
        for paragraph in summary.split('\n'):
            if paragraph.strip():
                story.append(Paragraph(escape(paragraph.strip()), styles['pdfBody']))
                story.append(Spacer(1, 3))

    doc.build(story)
    pdf_buffer.seek(0)
    return pdf_buffer
