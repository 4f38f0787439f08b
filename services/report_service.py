"""
PDF report for a completed freedom assessment.

Uses reportlab platypus: title, overall score and archetype, a component
score table and the prioritized sprint recommendations.
"""
import io
from datetime import datetime, timezone
from typing import Dict, Any

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

from config.database import get_supabase
from services.assessment_service import ARCHETYPES, COMPONENTS, COMPONENT_LABELS
from services.recommendation_service import get_recommendations
from utils.logger import log_info


def _score_band(score) -> str:
    if score is None:
        return 'Not answered'
    if score < 50:
        return 'Needs attention'
    if score < 75:
        return 'Developing'
    return 'Strong'


def _archetype_description(name: str) -> str:
    for archetype in ARCHETYPES.values():
        if archetype['name'] == name:
            return archetype['description']
    return ''


def build_report_pdf(report: Dict[str, Any], business_name: str = None) -> io.BytesIO:
    """
    Render report data (as returned by get_recommendations) to a PDF.

    Returns:
        BytesIO positioned at the start of the PDF
    """
    assessment = report['assessment']
    recommendations = report['recommendations']

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter,
                            rightMargin=72, leftMargin=72,
                            topMargin=72, bottomMargin=72,
                            title='Freedom Score Report')

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontName='Helvetica-Bold',
        fontSize=20,
        spaceAfter=12,
        alignment=1,
        leading=24,
    )
    heading_style = ParagraphStyle(
        'ReportHeading',
        parent=styles['Heading2'],
        fontName='Helvetica-Bold',
        fontSize=14,
        spaceBefore=16,
        spaceAfter=8,
        leading=16,
    )
    normal_style = ParagraphStyle(
        'ReportNormal',
        parent=styles['Normal'],
        fontName='Helvetica',
        fontSize=10,
        spaceAfter=6,
        leading=13,
    )
    muted_style = ParagraphStyle(
        'ReportMuted',
        parent=normal_style,
        fontName='Helvetica-Oblique',
        fontSize=9,
        textColor=colors.HexColor('#666666'),
    )

    story = [Paragraph('Freedom Score Report', title_style)]
    taken = assessment.get('date_taken') or ''
    subtitle = f"Assessment taken {escape(str(taken)[:10])}" if taken else 'Assessment'
    if business_name:
        subtitle = f"{escape(business_name)} · {subtitle}"
    story.append(Paragraph(subtitle, muted_style))
    story.append(Spacer(1, 0.2 * inch))

    story.append(Paragraph('Overall', heading_style))
    story.append(Paragraph(f"<b>Freedom Score:</b> {assessment.get('overall_score')}/100", normal_style))
    archetype = assessment.get('archetype')
    if archetype:
        story.append(Paragraph(f"<b>Archetype:</b> {escape(archetype)}", normal_style))
        description = _archetype_description(archetype)
        if description:
            story.append(Paragraph(escape(description), normal_style))

    story.append(Paragraph('Component Scores', heading_style))
    table_data = [['Component', 'Score', 'Status']]
    for component in COMPONENTS:
        score = assessment['component_scores'].get(component)
        table_data.append([
            COMPONENT_LABELS[component],
            f"{score:g}" if score is not None else '-',
            _score_band(score),
        ])
    table = Table(table_data, colWidths=[2.5 * inch, 1.2 * inch, 2.3 * inch])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#E8E8E8')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('ALIGN', (1, 0), (1, -1), 'CENTER'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    story.append(table)

    story.append(Paragraph('Recommended Sprints', heading_style))
    if not recommendations:
        story.append(Paragraph('No sprint recommendations for this assessment.', normal_style))
    for recommendation in recommendations:
        sprint = recommendation.get('sprints') or {}
        title = sprint.get('sprint_title') or 'Sprint'
        line = f"<b>{recommendation.get('priority_rank')}. {escape(title)}</b>"
        if recommendation.get('status') and recommendation['status'] != 'recommended':
            line += f" ({escape(recommendation['status'].replace('_', ' '))})"
        story.append(Paragraph(line, normal_style))
        if recommendation.get('reasoning'):
            story.append(Paragraph(escape(recommendation['reasoning']), normal_style))
        if recommendation.get('estimated_time_to_complete'):
            story.append(Paragraph(
                f"Estimated time: {escape(recommendation['estimated_time_to_complete'])}", muted_style))

    story.append(Spacer(1, 0.3 * inch))
    generated = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')
    story.append(Paragraph(f"Generated {generated}", muted_style))

    doc.build(story)
    buffer.seek(0)
    return buffer


def generate_assessment_report(user_id: str, assessment_id: str) -> io.BytesIO:
    """PDF report for one of the user's assessments"""
    report = get_recommendations(user_id, assessment_id)

    supabase = get_supabase()
    context = supabase.table('business_context').select('business_name').eq(
        'user_id', user_id).limit(1).execute().data
    business_name = context[0].get('business_name') if context else None

    buffer = build_report_pdf(report, business_name=business_name)
    log_info(f"[REPORT] Generated PDF for assessment {assessment_id}")
    return buffer
