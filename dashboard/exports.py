"""Excel and PDF renderings of the inventory period report"""
import io

import openpyxl
from django.http import HttpResponse
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

REPORT_TITLE = "Kash Kitchen - Inventory Report"

HEADERS = [
    'Item', 'SKU', 'Category', 'Unit', 'Opening Stock', 'Stock Received',
    'Stock Used', 'Closing Stock', 'Unit Cost',
]


def _row_values(row):
    return [
        row['name'], row['sku'], row['category'], row['unit'],
        float(row['opening_stock']), float(row['stock_received']),
        float(row['stock_used']), float(row['closing_stock']), float(row['unit_cost']),
    ]


def _filename(start, end, extension):
    return f"inventory_report_{start}_{end}.{extension}"


def inventory_report_excel(rows, start, end):
    """Generate Excel Inventory Report"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Inventory Report"

    header_font = Font(bold=True, size=12)
    title_font = Font(bold=True, size=16)
    header_fill = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")

    ws['A1'] = REPORT_TITLE
    ws['A1'].font = title_font
    ws['A2'] = f"Period: {start} to {end}"
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(HEADERS))
    ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(HEADERS))

    for col, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=4, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill

    for row_index, row in enumerate(rows, start=5):
        for col, value in enumerate(_row_values(row), 1):
            ws.cell(row=row_index, column=col, value=value)

    # Auto-adjust column widths
    for column in ws.iter_cols(min_row=4):
        width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=8)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    response = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    response['Content-Disposition'] = f'attachment; filename="{_filename(start, end, "xlsx")}"'
    wb.save(response)
    return response


def inventory_report_pdf(rows, start, end):
    """Generate PDF Inventory Report"""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=18,
        spaceAfter=20,
        alignment=1,
    )

    story = [
        Paragraph(REPORT_TITLE, title_style),
        Paragraph(f"Period: {start} to {end}", styles['Heading2']),
        Spacer(1, 20),
    ]

    data = [HEADERS]
    for row in rows:
        data.append([
            row['name'][:30], row['sku'], row['category'], row['unit'],
            f"{row['opening_stock']:.3f}", f"{row['stock_received']:.3f}",
            f"{row['stock_used']:.3f}", f"{row['closing_stock']:.3f}",
            f"{row['unit_cost']:.2f}",
        ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (4, 1), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
    ]))
    story.append(table)
    doc.build(story)

    buffer.seek(0)
    response = HttpResponse(buffer.getvalue(), content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{_filename(start, end, "pdf")}"'
    return response
