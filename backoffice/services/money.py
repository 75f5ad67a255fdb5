"""
Normalização de valores monetários e percentuais digitados pelo operador.

A entrada de moeda é "centavos primeiro": só os dígitos contam e o número
resultante é dividido por 100 (digitar "150" dá R$ 1,50). Percentuais aceitam
vírgula como separador decimal. Internamente tudo é Decimal.
"""
from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
CURRENCY_SYMBOL = "R$"

_NON_DIGITS = re.compile(r"\D")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        # via str para não herdar a representação binária do float
        d = Decimal(str(value))
    else:
        try:
            d = Decimal(value)
        except (InvalidOperation, TypeError):
            raise ValueError(f"valor numérico inválido: {value!r}")
    if not d.is_finite():
        raise ValueError(f"valor numérico inválido: {value!r}")
    return d


def quantize_money(v: Number) -> Decimal:
    return to_decimal(v).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_currency_input(text: Optional[str]) -> Decimal:
    digits = _NON_DIGITS.sub("", text or "")
    if not digits:
        return ZERO
    return (Decimal(int(digits)) / HUNDRED).quantize(CENTS)


def format_decimal_br(value: Number, places: int = 2) -> str:
    """1234.5 -> '1.234,50'"""
    q = to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return f"{q:,.{places}f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_currency(value: Number) -> str:
    """1234.5 -> 'R$ 1.234,50'"""
    d = quantize_money(value)
    if d < 0:
        return f"-{CURRENCY_SYMBOL} {format_decimal_br(-d)}"
    return f"{CURRENCY_SYMBOL} {format_decimal_br(d)}"


def parse_percentage_input(
    text: Optional[str],
    *,
    max_value: Number = 100,
    decimal_places: int = 2,
) -> Decimal:
    raw = (text or "").replace("%", "")
    raw = re.sub(r"[^0-9,]", "", raw)

    # só a primeira vírgula vale
    comma = raw.find(",")
    if comma > -1:
        decimals = raw[comma + 1:].replace(",", "")[:decimal_places]
        raw = raw[:comma] + "," + decimals

    if raw.startswith(","):
        raw = "0" + raw

    if not raw:
        return ZERO

    try:
        value = Decimal(raw.rstrip(",").replace(",", "."))
    except InvalidOperation:
        return ZERO

    return min(value, to_decimal(max_value))


def format_percentage_input(value: Number, decimal_places: int = 2) -> str:
    """12.5 -> '12,50' (o que fica no campo depois do blur)"""
    q = to_decimal(value).quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)
    return f"{q:.{decimal_places}f}".replace(".", ",")


def format_percentage(value: Number) -> str:
    """12.5 -> '12,5%'; até duas casas, sem zeros à direita"""
    q = to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    text = f"{q:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    text = text.rstrip("0").rstrip(",")
    return f"{text}%"


def compute_sale_price_from_margin(cost_price: Number, margin_percent: Number) -> Decimal:
    cost = to_decimal(cost_price)
    margin = to_decimal(margin_percent)
    return quantize_money(cost * (1 + margin / HUNDRED))


def compute_margin_from_prices(cost_price: Optional[Number], sale_price: Optional[Number]) -> Optional[Decimal]:
    """
    Margem em % sobre o custo. Sem custo (zero ou não numérico) não há margem: None.
    """
    if cost_price is None or sale_price is None:
        return None
    try:
        cost = to_decimal(cost_price)
        sale = to_decimal(sale_price)
    except ValueError:
        return None
    if cost == 0:
        return None
    return ((sale - cost) / cost * HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


def apply_adjustment(base: Number, kind: str, value: Number) -> Decimal:
    """
    Valor de um acréscimo/desconto: 'fixed' é o próprio valor,
    'percentage' é percentual sobre a base.
    """
    v = to_decimal(value)
    if v < 0:
        raise ValueError("Valor de ajuste não pode ser negativo.")
    if kind == "percentage":
        return quantize_money(to_decimal(base) * v / HUNDRED)
    if kind == "fixed":
        return quantize_money(v)
    raise ValueError(f"Tipo de ajuste inválido: {kind}")
