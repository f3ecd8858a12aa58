"""
Macchine a stati dei documenti
Progetto: Garage Documents (Documenti Commerciali Officina)

Regole di transizione e di modificabilità per preventivi, ordini di lavoro
e fatture. Le matrici di transizione sono definite negli schemi
(app.schemas.*) come unica source of truth; qui vengono applicate.

Nessuna funzione accede al database: i controlli lavorano sullo stato
letto dal service, e il service ri-verifica lo stato salvato al momento
della scrittura (vedi app.services.guards.claim_document).
"""

import datetime
import logging
from typing import Any, Optional

from app.core.exceptions import BusinessValidationError, StateConflictError
from app.schemas.invoice import (
    EDITABLE_STATUSES as INVOICE_EDITABLE_STATUSES,
    LINE_EDITABLE_STATUSES as INVOICE_LINE_EDITABLE_STATUSES,
    VALID_TRANSITIONS as INVOICE_TRANSITIONS,
    InvoiceStatus,
)
from app.schemas.quotation import (
    EDITABLE_STATUSES as QUOTATION_EDITABLE_STATUSES,
    VALID_TRANSITIONS as QUOTATION_TRANSITIONS,
    QuotationStatus,
    is_quotation_expired,
)
from app.schemas.work_order import (
    LOCKED_STATUSES,
    STATUS_SEQUENCE,
    TERMINAL_STATUSES,
    WorkOrderStatus,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _conflict(label: str, number: str, current: str, action: str) -> StateConflictError:
    logger.warning("%s %s: operazione '%s' rifiutata in stato '%s'", label, number, action, current)
    return StateConflictError(
        f"Impossibile eseguire '{action}' su {label.lower()} in stato '{current}'",
        extra={"status": current, "action": action},
    )


# ------------------------------------------------------------
# Preventivi
# ------------------------------------------------------------

class QuotationStateMachine:
    """
    draft → sent → {approved, rejected}; approved → converted;
    draft | sent | approved | rejected → cancelled.

    "expired" è derivato: un preventivo sent oltre valid_until viene
    mostrato come scaduto senza modificare lo stato salvato.
    """

    label = "Preventivo"

    def allowed_sources(self, target: QuotationStatus) -> list[QuotationStatus]:
        """Stati salvati da cui è possibile raggiungere `target`."""
        return [
            source for source, targets in QUOTATION_TRANSITIONS.items()
            if target in targets
        ]

    def ensure_transition(self, quotation, target: QuotationStatus, action: str) -> None:
        """
        Verifica che la transizione verso `target` sia consentita.

        Raises:
            StateConflictError: Se lo stato corrente non prevede la transizione
        """
        current = QuotationStatus(quotation.status)
        if target not in QUOTATION_TRANSITIONS[current]:
            raise _conflict(self.label, quotation.number, current.value, action)

    def ensure_editable(self, quotation, action: str = "modifica") -> None:
        """Campi e righe sono modificabili solo in bozza."""
        if QuotationStatus(quotation.status) not in QUOTATION_EDITABLE_STATUSES:
            raise _conflict(self.label, quotation.number, quotation.status, action)

    def ensure_can_send(self, quotation) -> None:
        """
        draft → sent richiede almeno una riga.

        Raises:
            StateConflictError: Se il preventivo non è in bozza
            BusinessValidationError: Se il preventivo non ha righe
        """
        self.ensure_transition(quotation, QuotationStatus.SENT, "invio")
        if not quotation.items:
            raise BusinessValidationError(
                "Impossibile inviare un preventivo senza righe",
                extra={"field": "items"},
            )

    def ensure_can_approve(
        self,
        quotation,
        allow_expired: bool,
        today: Optional[datetime.date] = None,
    ) -> None:
        """
        sent → approved. Un preventivo scaduto è approvabile solo se
        la configurazione lo consente.
        """
        self.ensure_transition(quotation, QuotationStatus.APPROVED, "approvazione")
        if not allow_expired and self.is_expired(quotation, today):
            logger.warning("Approvazione rifiutata: preventivo %s scaduto", quotation.number)
            raise StateConflictError(
                f"Il preventivo {quotation.number} è scaduto il {quotation.valid_until}",
                error_code="QUOTATION_EXPIRED",
                extra={"status": QuotationStatus.EXPIRED.value, "action": "approvazione"},
            )

    def ensure_can_cancel(self, quotation) -> None:
        self.ensure_transition(quotation, QuotationStatus.CANCELLED, "annullamento")

    def is_expired(self, quotation, today: Optional[datetime.date] = None) -> bool:
        """True se il preventivo è inviato e oltre la data di validità."""
        return is_quotation_expired(quotation.status, quotation.valid_until, today)

    def display_status(self, quotation, today: Optional[datetime.date] = None) -> QuotationStatus:
        """Stato da presentare all'utente."""
        if self.is_expired(quotation, today):
            return QuotationStatus.EXPIRED
        return QuotationStatus(quotation.status)


# ------------------------------------------------------------
# Ordini di lavoro
# ------------------------------------------------------------

class WorkOrderStateMachine:
    """
    Pipeline lineare pending → … → delivered.

    Movimento a un passo (advance/revert) o salto diretto a qualunque
    stato; l'unico vincolo è che delivered è terminale. L'ingresso in
    completed registra completed_at, l'uscita verso uno stato diverso da
    delivered lo azzera; l'ingresso in delivered registra delivered_at.
    """

    label = "Ordine di lavoro"

    def _ensure_not_terminal(self, work_order, action: str) -> WorkOrderStatus:
        current = WorkOrderStatus(work_order.status)
        if current in TERMINAL_STATUSES:
            raise _conflict(self.label, work_order.number, current.value, action)
        return current

    def next_status(self, work_order) -> WorkOrderStatus:
        """Stato successivo nella pipeline."""
        current = self._ensure_not_terminal(work_order, "avanzamento")
        return STATUS_SEQUENCE[STATUS_SEQUENCE.index(current) + 1]

    def previous_status(self, work_order) -> WorkOrderStatus:
        """Stato precedente nella pipeline."""
        current = self._ensure_not_terminal(work_order, "ritorno")
        index = STATUS_SEQUENCE.index(current)
        if index == 0:
            raise _conflict(self.label, work_order.number, current.value, "ritorno")
        return STATUS_SEQUENCE[index - 1]

    def ensure_status_change(self, work_order, target: WorkOrderStatus) -> None:
        """
        Cambio diretto di stato.

        Raises:
            StateConflictError: Se l'ordine è consegnato o è già nello stato richiesto
        """
        current = self._ensure_not_terminal(work_order, "cambio stato")
        if current == target:
            raise _conflict(self.label, work_order.number, current.value, f"cambio stato a '{target.value}'")

    def ensure_lines_editable(self, work_order, action: str = "modifica righe") -> None:
        """Righe modificabili finché l'ordine non è completato o consegnato."""
        if WorkOrderStatus(work_order.status) in LOCKED_STATUSES:
            raise _conflict(self.label, work_order.number, work_order.status, action)

    def ensure_editable(self, work_order, action: str = "modifica") -> None:
        """I campi di testata sono modificabili fino alla consegna."""
        self._ensure_not_terminal(work_order, action)

    def transition_values(
        self,
        work_order,
        target: WorkOrderStatus,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        """
        Colonne da scrivere insieme al nuovo stato.

        Returns:
            dict: status più eventuali completed_at / delivered_at
        """
        current = WorkOrderStatus(work_order.status)
        values: dict[str, Any] = {"status": target.value}
        if target == WorkOrderStatus.COMPLETED:
            values["completed_at"] = now
        elif current == WorkOrderStatus.COMPLETED and target != WorkOrderStatus.DELIVERED:
            values["completed_at"] = None
        if target == WorkOrderStatus.DELIVERED:
            values["delivered_at"] = now
        return values


# ------------------------------------------------------------
# Fatture
# ------------------------------------------------------------

class InvoiceStateMachine:
    """
    draft → sent → paid; sent → overdue (riconciliazione) → paid;
    draft | sent | overdue → cancelled. paid e cancelled sono immutabili.
    """

    label = "Fattura"

    def allowed_sources(self, target: InvoiceStatus) -> list[InvoiceStatus]:
        """Stati da cui è possibile raggiungere `target`."""
        return [
            source for source, targets in INVOICE_TRANSITIONS.items()
            if target in targets
        ]

    def ensure_transition(self, invoice, target: InvoiceStatus, action: str) -> None:
        current = InvoiceStatus(invoice.status)
        if target not in INVOICE_TRANSITIONS[current]:
            raise _conflict(self.label, invoice.number, current.value, action)

    def ensure_can_send(self, invoice) -> None:
        """draft → sent richiede almeno una riga."""
        self.ensure_transition(invoice, InvoiceStatus.SENT, "invio")
        if not invoice.items:
            raise BusinessValidationError(
                "Impossibile inviare una fattura senza righe",
                extra={"field": "items"},
            )

    def ensure_can_pay(self, invoice) -> None:
        self.ensure_transition(invoice, InvoiceStatus.PAID, "pagamento")

    def ensure_can_cancel(self, invoice) -> None:
        self.ensure_transition(invoice, InvoiceStatus.CANCELLED, "annullamento")

    def ensure_editable(self, invoice, action: str = "modifica") -> None:
        """Campi di testata modificabili in draft, sent e overdue."""
        if InvoiceStatus(invoice.status) not in INVOICE_EDITABLE_STATUSES:
            raise _conflict(self.label, invoice.number, invoice.status, action)

    def ensure_lines_editable(self, invoice, action: str = "modifica righe") -> None:
        """Righe modificabili solo in bozza."""
        if InvoiceStatus(invoice.status) not in INVOICE_LINE_EDITABLE_STATUSES:
            raise _conflict(self.label, invoice.number, invoice.status, action)


# Istanze condivise
quotation_machine = QuotationStateMachine()
work_order_machine = WorkOrderStateMachine()
invoice_machine = InvoiceStateMachine()
