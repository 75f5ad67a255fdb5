"""
Ciclo de vida do pedido: tabela canônica código <-> rótulo e as transições
que o resto do sistema usa.

O código (OrderStatus) é o que vai para o banco; o rótulo é o que aparece na
tela e nos comprovantes. As duas direções são geradas da mesma tabela.
"""
from __future__ import annotations

import logging
from typing import Union

from backoffice.infra.models import OrderStatus, SaleType

logger = logging.getLogger(__name__)


STATUS_TABLE: tuple[tuple[OrderStatus, str], ...] = (
    (OrderStatus.PENDING, "Pendente"),
    (OrderStatus.PROCESSING, "Em Processamento"),
    (OrderStatus.AWAITING_PAYMENT, "Aguardando Pagamento"),
    (OrderStatus.PAID, "Pago"),
    (OrderStatus.PACKED, "Embalado"),
    (OrderStatus.SHIPPED, "Enviado"),
    (OrderStatus.DELIVERED, "Entregue"),
    (OrderStatus.CANCELED, "Cancelado"),
    (OrderStatus.RETURNED, "Devolvido"),
    (OrderStatus.REFUNDED, "Reembolsado"),
    (OrderStatus.AWAITING_PICKUP, "Aguardando Retirada"),
)

CODE_TO_LABEL: dict[OrderStatus, str] = {code: label for code, label in STATUS_TABLE}
LABEL_TO_CODE: dict[str, OrderStatus] = {label: code for code, label in STATUS_TABLE}

INITIAL_STATUS = OrderStatus.PENDING

# indicador do comprovante térmico: Pendente -> Pago -> Embalado -> Entregue
RECEIPT_STEPS: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PACKED,
    OrderStatus.DELIVERED,
)

_RECEIPT_STEP_INDEX: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 0,
    OrderStatus.AWAITING_PAYMENT: 0,
    OrderStatus.PAID: 1,
    OrderStatus.PACKED: 2,
    OrderStatus.SHIPPED: 2,
    OrderStatus.AWAITING_PICKUP: 2,
    OrderStatus.DELIVERED: 3,
}


def label_for(status: OrderStatus) -> str:
    return CODE_TO_LABEL[status]


def get_status_from_translation(label: str) -> OrderStatus:
    """
    Rótulo -> código por igualdade exata. Rótulo desconhecido cai em PENDING
    sem erro.
    """
    code = LABEL_TO_CODE.get(label)
    if code is None:
        logger.warning("rótulo de status desconhecido %r, usando %s", label, INITIAL_STATUS.value)
        return INITIAL_STATUS
    return code


def coerce_status(value: Union[OrderStatus, str]) -> OrderStatus:
    """
    Entrada vinda da API: aceita o código ('PAID') ou o rótulo ('Pago').
    Diferente da tradução, aqui valor desconhecido é erro.
    """
    if isinstance(value, OrderStatus):
        return value
    v = (value or "").strip()
    try:
        return OrderStatus(v.upper())
    except ValueError:
        pass
    if v in LABEL_TO_CODE:
        return LABEL_TO_CODE[v]
    raise ValueError(f"Status inválido: {value}")


def status_after_preparation(sale_type: SaleType) -> OrderStatus:
    if sale_type == SaleType.DELIVERY:
        return OrderStatus.PACKED
    return OrderStatus.AWAITING_PICKUP


def receipt_progress(status: OrderStatus) -> list[dict]:
    """
    Passos do indicador com a marcação de alcançado. Cancelado, devolvido e
    reembolsado ficam fora da sequência: nenhum passo marcado.
    """
    reached = _RECEIPT_STEP_INDEX.get(status, -1)
    return [
        {"status": step.value, "label": label_for(step), "reached": i <= reached}
        for i, step in enumerate(RECEIPT_STEPS)
    ]
