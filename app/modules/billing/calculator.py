"""
Cálculo de totales de documentos comerciales.

Modelo fijo de tres componentes de impuesto (CGST, SGST, IGST) sin reglas de
jurisdicción. Aritmética Decimal sin redondeo; el formato a dos decimales es
responsabilidad de la presentación.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Union

from app.modules.billing.schemas import DocumentTotals, LineItem, SuppliedTotals

TAX_COMPONENTS = ("cgst", "sgst", "igst")

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convierte valores de JSON/payload a Decimal; vacío o inválido es cero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        # float pasa por str para no arrastrar el error binario
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def _item_value(item: Union[LineItem, Mapping[str, Any]], field: str) -> Decimal:
    if isinstance(item, LineItem):
        return to_decimal(getattr(item, field))
    return to_decimal(item.get(field))


def compute_totals(
    line_items: Iterable[Union[LineItem, Mapping[str, Any]]],
    supplied: Optional[SuppliedTotals] = None
) -> DocumentTotals:
    """
    Derivar subtotal, impuestos y total.

    - subtotal enviado distinto de cero: se respeta; si no, suma de item.amount
    - si ningún componente de impuesto viene informado, se suman los de cada ítem
    - total enviado distinto de cero: se respeta; si no, subtotal + impuestos
    """
    items = list(line_items or [])
    supplied = supplied or SuppliedTotals()

    subtotal = to_decimal(supplied.subtotal)
    if not subtotal:
        subtotal = sum((_item_value(item, "amount") for item in items), ZERO)

    taxes = {component: to_decimal(getattr(supplied, component)) for component in TAX_COMPONENTS}
    if not any(taxes.values()):
        taxes = {
            component: sum((_item_value(item, f"{component}_amount") for item in items), ZERO)
            for component in TAX_COMPONENTS
        }

    total = to_decimal(supplied.total)
    if not total:
        total = subtotal + sum(taxes.values(), ZERO)

    return DocumentTotals(subtotal=subtotal, total=total, **taxes)


def serialize_line_items(line_items: Iterable[LineItem]) -> list:
    """Ítems en forma JSON para la columna line_items."""
    return [item.model_dump(mode="json") for item in line_items]
