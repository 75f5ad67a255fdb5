"""
Gera HTML do comprovante (não fiscal) e do orçamento para impressão térmica.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Optional, Sequence

from backoffice.config import QUOTE_VALIDITY_DAYS
from backoffice.infra.models import AdjustmentType, PaymentMethod, SaleORM, SaleType
from backoffice.services.money import format_currency, format_decimal_br, format_percentage
from backoffice.services.order_status import label_for, receipt_progress

PAYMENT_LABELS = {
    PaymentMethod.CASH: "Dinheiro",
    PaymentMethod.CREDIT_CARD: "Cartão de Crédito",
    PaymentMethod.DEBIT_CARD: "Cartão de Débito",
    PaymentMethod.PIX: "PIX",
}

SALE_TYPE_LABELS = {
    SaleType.PICKUP: "Retirada",
    SaleType.DELIVERY: "Entrega",
}

PAPER_WIDTH_MM = 80

_STYLE = """
  body {
    width: %(w)smm;
    margin: 4mm auto;
    font-family: monospace, sans-serif;
    font-size: 10pt;
    background: #fff;
    color: #000;
  }
  .header { text-align: center; font-weight: bold; margin-bottom: 4px; }
  .subheader { text-align: center; font-size: 0.9em; margin-bottom: 8px; }
  .line { margin: 2px 0; word-break: break-word; }
  .component { margin: 1px 0 1px 12px; font-size: 0.85em; }
  .total { font-weight: bold; margin-top: 6px; }
  .steps { display: flex; justify-content: space-between; margin: 6px 0; font-size: 0.8em; }
  .step { opacity: 0.4; }
  .step.reached { opacity: 1; font-weight: bold; }
  .warning { font-weight: bold; text-align: center; }
  .footer { text-align: center; margin-top: 12px; font-size: 0.9em; }
  @media print { .no-print { display: none !important; } }
"""

SEPARATOR = "<div class='line'>--------------------------------</div>"


def format_quantity(value) -> str:
    """3.000 -> '3'; 1.500 -> '1,5'."""
    q = Decimal(str(value)).normalize()
    if q == q.to_integral():
        return f"{q.to_integral():f}"
    places = max(0, -q.as_tuple().exponent)
    return format_decimal_br(q, places)


def format_datetime(d: Optional[datetime]) -> str:
    if d is None:
        return "-"
    return d.strftime("%d/%m/%Y %H:%M")


def _document(title: str, lines: Sequence[str]) -> str:
    body_content = "\n".join(lines)
    return f"""<!DOCTYPE html>
<html lang="pt-BR">
<head>
<meta charset="utf-8">
<title>{escape(title)}</title>
<style>{_STYLE % {"w": PAPER_WIDTH_MM}}</style>
</head>
<body>
<div class="receipt-content">
{body_content}
</div>
<div class="no-print">
  <button type="button" onclick="window.print();">Imprimir</button>
</div>
</body>
</html>"""


def _item_lines(name: str, quantity, unit_price, total_price, components) -> list[str]:
    out = [
        f"<div class='line'>{escape(name)}</div>",
        f"<div class='line'>{format_quantity(quantity)} x {format_currency(unit_price)} = {format_currency(total_price)}</div>",
    ]
    for c in components:
        out.append(f"<div class='component'>{format_quantity(c.quantity)}x {escape(c.product_name)}</div>")
    return out


def _adjustment_text(kind: AdjustmentType, value, amount) -> str:
    if kind == AdjustmentType.PERCENTAGE:
        return f"{format_percentage(value)} ({format_currency(amount)})"
    return format_currency(amount)


def build_sale_receipt_html(sale: SaleORM, details) -> str:
    """
    sale: venda com delivery_info carregado.
    details: SaleItemDetail[] (item + componentes abertos).
    """
    lines = [
        "<div class='header'>Comprovante de Venda</div>",
        "<div class='subheader'>Extrato não fiscal</div>",
        f"<div class='line'>Pedido #{sale.id} &nbsp; {format_datetime(sale.created_at)}</div>",
        f"<div class='line'>{SALE_TYPE_LABELS[sale.sale_type]} &nbsp; {PAYMENT_LABELS[sale.payment_method]}</div>",
        f"<div class='line'>Status: {label_for(sale.status)}</div>",
    ]

    steps = "".join(
        f"<span class='step{' reached' if s['reached'] else ''}'>{escape(s['label'])}</span>"
        for s in receipt_progress(sale.status)
    )
    lines.append(f"<div class='steps'>{steps}</div>")
    lines.append(SEPARATOR)

    for d in details:
        it = d.item
        lines.extend(_item_lines(it.product_name, it.quantity, it.unit_price, it.total_price, d.components))

    lines.append(SEPARATOR)
    lines.append(f"<div class='line'>Subtotal: {format_currency(sale.subtotal)}</div>")
    if sale.addition_amount:
        lines.append(
            f"<div class='line'>Acréscimo: {_adjustment_text(sale.addition_type, sale.addition_value, sale.addition_amount)}</div>"
        )
    if sale.discount_amount:
        lines.append(
            f"<div class='line'>Desconto: -{_adjustment_text(sale.discount_type, sale.discount_value, sale.discount_amount)}</div>"
        )
    if sale.sale_type == SaleType.DELIVERY and sale.delivery_fee:
        lines.append(f"<div class='line'>Taxa de entrega: {format_currency(sale.delivery_fee)}</div>")
    lines.append(f"<div class='line total'>Total: {format_currency(sale.total)}</div>")

    info = sale.delivery_info
    if info is not None:
        lines.append(SEPARATOR)
        lines.append(f"<div class='line'>Cliente: {escape(info.customer_name)}</div>")
        if info.customer_phone:
            lines.append(f"<div class='line'>Telefone: {escape(info.customer_phone)}</div>")
        lines.append(f"<div class='line'>Entrega: {format_datetime(info.delivery_date)}</div>")
        address = ", ".join(
            escape(p) for p in (info.street, info.number, info.complement, info.neighborhood) if p
        )
        if address:
            lines.append(f"<div class='line'>{address}</div>")
        city = " - ".join(escape(p) for p in (info.city, info.state) if p)
        if city or info.cep:
            lines.append(f"<div class='line'>{city} {escape(info.cep or '')}".rstrip() + "</div>")
        if info.additional_info:
            lines.append(f"<div class='line'>Obs. entrega: {escape(info.additional_info)}</div>")
        if info.from_text:
            lines.append(f"<div class='line'>De: {escape(info.from_text)}</div>")
        if info.to_text:
            lines.append(f"<div class='line'>Para: {escape(info.to_text)}</div>")

    if sale.notes:
        lines.append(f"<div class='line'>Obs.: {escape(sale.notes)}</div>")
    lines.append("<div class='footer'>Obrigado pela preferência!</div>")

    return _document(f"Comprovante #{sale.id}", lines)


def build_quote_html(quote) -> str:
    lines = [
        "<div class='header'>Orçamento</div>",
        f"<div class='subheader'>{format_datetime(quote.issued_at)}</div>",
        f"<div class='warning'>Válido até: {quote.valid_until.strftime('%d/%m/%Y')}</div>",
    ]
    if quote.customer_name:
        lines.append(f"<div class='line'>Cliente: {escape(quote.customer_name)}</div>")
    lines.append(SEPARATOR)

    for e in quote.entries:
        name = e.line.product.name + (" (Composto)" if e.line.product.is_composition else "")
        lines.extend(_item_lines(name, e.line.quantity, e.line.unit_price, e.line.total_price, e.components))

    lines.append(SEPARATOR)
    lines.append(f"<div class='line total'>TOTAL: {format_currency(quote.total)}</div>")
    if quote.notes:
        lines.append(f"<div class='line'>Obs.: {escape(quote.notes)}</div>")
    lines.append(
        "<div class='footer'>Obrigado pela preferência!<br>"
        f"Este orçamento tem validade de {QUOTE_VALIDITY_DAYS} dias<br>"
        "Valores somente para retirada na loja</div>"
    )
    return _document("Orçamento", lines)
