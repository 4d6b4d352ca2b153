"""PDF invoices for orders, rendered with reportlab."""
from datetime import datetime
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from services.pricing import to_money

STATUS_LABELS = {
    "PENDING": "En attente",
    "CONFIRMED": "Confirmée",
    "PROCESSING": "En préparation",
    "SHIPPED": "Expédiée",
    "DELIVERED": "Livrée",
    "CANCELLED": "Annulée",
    "REFUNDED": "Remboursée",
}


def format_amount(value):
    # 12 500 XOF style, no decimals
    return f"{int(to_money(value)):,}".replace(",", " ") + " XOF"


def _styles():
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("title", parent=styles["Title"], alignment=2, fontSize=22),
        "right": ParagraphStyle("right", parent=styles["Normal"], alignment=2),
        "heading": ParagraphStyle("heading", parent=styles["Heading3"], spaceAfter=4),
        "normal": styles["Normal"],
        "small": ParagraphStyle("small", parent=styles["Normal"], fontSize=8, textColor=colors.grey, alignment=1),
    }


def _party_block(title, lines, style):
    return [Paragraph(f"<b>{title}</b>", style["heading"])] + [
        Paragraph(line, style["normal"]) for line in lines if line
    ]


def render_invoice(order, seller=None, items=None, store_name="Sendiaba"):
    """Build the invoice PDF and return its bytes.

    ``items`` defaults to every line of the order; seller views pass only the
    seller's own lines.
    """
    items = order.order_items if items is None else items
    style = _styles()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=18 * mm, rightMargin=18 * mm,
                            topMargin=18 * mm, bottomMargin=18 * mm,
                            title=f"Facture {order.order_number}")
    story = [
        Paragraph("FACTURE", style["title"]),
        Paragraph(f"N° {order.order_number}", style["right"]),
        Paragraph(f"Date : {order.created_at.strftime('%d/%m/%Y')}", style["right"]),
        Spacer(1, 10 * mm),
    ]

    seller_lines = [store_name]
    if seller is not None:
        seller_lines = [seller.full_name, f"Email : {seller.email}",
                        f"Tél : {seller.phone}" if seller.phone else None]
    customer = order.user
    customer_lines = [
        customer.full_name if customer else None,
        f"Email : {customer.email}" if customer else None,
        "<b>Adresse de livraison</b>",
        order.recipient_name,
        order.shipping_address,
        f"{order.shipping_city} {order.shipping_postal_code or ''}".strip(),
        ", ".join(filter(None, [order.shipping_region, order.shipping_country])),
        f"Tél : {order.recipient_phone}",
    ]
    parties = Table(
        [[_party_block("Vendeur", seller_lines, style), _party_block("Client", customer_lines, style)]],
        colWidths=[87 * mm, 87 * mm],
    )
    parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    story += [parties, Spacer(1, 6 * mm)]

    details = [f"Statut : {STATUS_LABELS.get(order.status, order.status)}"]
    if order.tracking_number:
        details.append(f"Numéro de suivi : {order.tracking_number}")
    if order.notes:
        details.append(f"Notes : {order.notes}")
    story += _party_block("Détails de la commande", details, style)
    story.append(Spacer(1, 4 * mm))

    rows = [["Produit", "SKU", "Qté", "Prix unit.", "Remise", "Total"]]
    for item in items:
        rows.append([
            Paragraph(item.product_name, style["normal"]),
            item.product_sku or "N/A",
            str(item.quantity),
            format_amount(item.unit_price),
            format_amount(to_money(item.discount) * item.quantity),
            format_amount(item.total),
        ])
    lines = Table(rows, colWidths=[55 * mm, 25 * mm, 12 * mm, 28 * mm, 26 * mm, 28 * mm], repeatRows=1)
    lines.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#dddddd")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story += [lines, Spacer(1, 6 * mm)]

    subtotal = sum((to_money(item.total) for item in items), to_money(0))
    discount = sum((to_money(item.discount) * item.quantity for item in items), to_money(0))
    totals = [["Sous-total :", format_amount(subtotal)]]
    if discount > 0:
        totals.append(["Remise :", "-" + format_amount(discount)])
    if to_money(order.tax) > 0:
        totals.append(["Taxe :", format_amount(order.tax)])
    if to_money(order.shipping) > 0:
        totals.append(["Livraison :", format_amount(order.shipping)])
    grand_total = subtotal + to_money(order.tax) + to_money(order.shipping)
    totals.append(["TOTAL :", format_amount(grand_total)])
    totals_table = Table(totals, colWidths=[140 * mm, 34 * mm])
    totals_table.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
    ]))
    story += [totals_table, Spacer(1, 15 * mm)]

    story.append(Paragraph(f"Cette facture a été générée automatiquement par {store_name}.", style["small"]))
    story.append(Paragraph(f"Générée le {datetime.utcnow().strftime('%d/%m/%Y %H:%M')}", style["small"]))

    doc.build(story)
    return buffer.getvalue()
