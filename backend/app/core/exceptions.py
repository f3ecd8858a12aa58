"""
Eccezioni Custom per l'applicazione.
Progetto: Garage Documents (Documenti Commerciali Officina)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori. Ogni eccezione porta con sé lo status HTTP
e il codice errore che l'handler in app.main restituisce al client
nel formato {"error": ..., "error_code": ...}.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (handler dedicato → 400)
- BusinessValidationError: violazioni delle regole di business logic (→ 400)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "StateConflictError",
    "VersionConflictError",
    "DuplicateConversionError",
    "IntegrityFailureError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """
    Eccezione sollevata quando una risorsa non viene trovata.

    Utilizzata anche per riferimenti a catalogo inesistenti e per
    documenti che appartengono a un'altra organizzazione.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per input fuori dominio o regole di business violate.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "quantity deve essere maggiore di zero"
        - "Il veicolo non appartiene al cliente selezionato"
        - "Impossibile inviare un preventivo senza righe"
    """

    status_code: int = 400
    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class StateConflictError(AppException):
    """
    Eccezione sollevata quando un'operazione non è consentita
    nello stato corrente del documento.
    """

    status_code: int = 400
    error_code: str = "STATE_CONFLICT"

    def __init__(
        self,
        detail: str = "Operazione non consentita nello stato corrente",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class VersionConflictError(StateConflictError):
    """
    Il documento è stato modificato da un'altra richiesta dopo l'ultima lettura.

    La versione inviata dal client non coincide con quella salvata.
    """

    status_code: int = 409
    error_code: str = "VERSION_CONFLICT"

    def __init__(
        self,
        detail: str = "Documento modificato da un'altra richiesta",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class DuplicateConversionError(StateConflictError):
    """Il documento sorgente è già stato convertito."""

    status_code: int = 409
    error_code: str = "ALREADY_CONVERTED"

    def __init__(
        self,
        detail: str = "Documento già convertito",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class IntegrityFailureError(AppException):
    """
    Un'operazione composta è fallita a metà.

    Viene sollevata solo dopo che le scritture parziali sono state annullate,
    quindi il chiamante non deve eseguire alcuna pulizia.
    """

    status_code: int = 500
    error_code: str = "INTEGRITY_FAILURE"

    def __init__(
        self,
        detail: str = "Operazione non completata, nessuna modifica salvata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)
