"""
Calcolo importi delle righe documento
Progetto: Garage Documents (Documenti Commerciali Officina)

Funzioni pure, senza stato né accesso al database.

Regole:
- subtotal = quantity × unit_price
- discount_amount = subtotal × discount_percent / 100
- tax_amount = (subtotal − discount_amount) × tax_percent / 100
- total = subtotal − discount_amount + tax_amount

L'IVA si applica sempre all'imponibile scontato. Ogni valore derivato della
riga è arrotondato a 2 decimali (ROUND_HALF_UP) nel momento in cui viene
calcolato; i totali documento sommano i valori già arrotondati senza
ulteriori arrotondamenti.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

from app.core.exceptions import BusinessValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
# Massimo rappresentabile nelle colonne Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")

NumberLike = Union[Decimal, int, str]


@dataclass(frozen=True)
class LineAmounts:
    """Blocco importi derivati di una riga o di un documento."""

    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO

    def __add__(self, other: "LineAmounts") -> "LineAmounts":
        return LineAmounts(
            subtotal=self.subtotal + other.subtotal,
            discount_amount=self.discount_amount + other.discount_amount,
            tax_amount=self.tax_amount + other.tax_amount,
            total=self.total + other.total,
        )


def round_money(value: Decimal) -> Decimal:
    """Arrotonda un importo a 2 decimali con ROUND_HALF_UP."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: NumberLike, field: str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise BusinessValidationError(
            f"{field}: valore numerico non valido",
            extra={"field": field},
        )
    if not result.is_finite():
        raise BusinessValidationError(
            f"{field}: valore numerico non valido",
            extra={"field": field},
        )
    return result


def _check_amount(amounts: LineAmounts, field: str) -> None:
    if amounts.subtotal > MAX_AMOUNT or amounts.total > MAX_AMOUNT:
        raise BusinessValidationError(
            f"{field}: importo oltre il massimo consentito ({MAX_AMOUNT})",
            extra={"field": field},
        )


def _check_percent(value: Decimal, field: str) -> None:
    if value < 0 or value > HUNDRED:
        raise BusinessValidationError(
            f"{field} deve essere compreso tra 0 e 100",
            extra={"field": field},
        )


def compute_line(
    quantity: NumberLike,
    unit_price: NumberLike,
    discount_percent: NumberLike = 0,
    tax_percent: NumberLike = 16,
) -> LineAmounts:
    """
    Calcola gli importi derivati di una singola riga.

    Args:
        quantity: Quantità, strettamente positiva
        unit_price: Prezzo unitario, non negativo
        discount_percent: Sconto percentuale tra 0 e 100
        tax_percent: Aliquota IVA percentuale tra 0 e 100

    Returns:
        LineAmounts: subtotal, discount_amount, tax_amount, total arrotondati

    Raises:
        BusinessValidationError: Se un valore è fuori dominio; il campo
            responsabile è riportato nel messaggio e in extra["field"]
    """
    quantity = _to_decimal(quantity, "quantity")
    unit_price = _to_decimal(unit_price, "unit_price")
    discount_percent = _to_decimal(discount_percent, "discount_percent")
    tax_percent = _to_decimal(tax_percent, "tax_percent")

    if quantity <= 0:
        raise BusinessValidationError(
            "quantity deve essere maggiore di zero",
            extra={"field": "quantity"},
        )
    if unit_price < 0:
        raise BusinessValidationError(
            "unit_price non può essere negativo",
            extra={"field": "unit_price"},
        )
    _check_percent(discount_percent, "discount_percent")
    _check_percent(tax_percent, "tax_percent")

    subtotal = round_money(quantity * unit_price)
    discount_amount = round_money(subtotal * discount_percent / HUNDRED)
    tax_amount = round_money((subtotal - discount_amount) * tax_percent / HUNDRED)
    total = subtotal - discount_amount + tax_amount

    amounts = LineAmounts(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
    )
    _check_amount(amounts, "quantity")
    return amounts


def compute_document_totals(lines: Iterable[LineAmounts]) -> LineAmounts:
    """
    Somma campo per campo gli importi delle righe.

    Args:
        lines: Importi già calcolati con compute_line

    Returns:
        LineAmounts: Totali del documento (tutti 0.00 per lista vuota)

    Raises:
        BusinessValidationError: Se i totali superano MAX_AMOUNT
    """
    totals = LineAmounts()
    for amounts in lines:
        totals = totals + amounts
    _check_amount(totals, "items")
    return totals


def compute_item(item) -> LineAmounts:
    """Ricalcola gli importi di una riga persistita a partire dai suoi input."""
    return compute_line(
        item.quantity,
        item.unit_price,
        item.discount_percent,
        item.tax_percent,
    )


def recalculate_document(document) -> LineAmounts:
    """
    Ricalcola ogni riga del documento e aggiorna i totali in testata.

    Le righe vengono riscritte con l'output del calcolatore, quindi i
    valori derivati non dipendono mai da quanto salvato in precedenza.

    Args:
        document: Documento con collezione `items` già caricata

    Returns:
        LineAmounts: Totali applicati al documento
    """
    line_amounts = []
    for item in document.items:
        amounts = compute_item(item)
        item.apply_amounts(amounts)
        line_amounts.append(amounts)
    totals = compute_document_totals(line_amounts)
    document.apply_totals(totals)
    return totals
