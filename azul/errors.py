from __future__ import annotations


class DocumentError(ValueError):
    """Base de las validaciones de dominio (la capa HTTP las mapea a 4xx)."""


class InvalidInstallmentCount(DocumentError):
    def __init__(self, installments, allowed=()):
        self.installments = installments
        self.allowed = tuple(allowed)
        opts = ", ".join(str(k) for k in self.allowed) or "-"
        super().__init__(f"Cantidad de cuotas inválida: {installments} (opciones: {opts})")


class InvalidQuantity(DocumentError):
    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"La cantidad mínima es 1 (recibido: {quantity})")


class InvalidAmount(DocumentError):
    pass


class InvalidRateTable(DocumentError):
    pass


class EmptyItemList(DocumentError):
    def __init__(self):
        super().__init__("Debe agregar al menos un producto")


class MissingClient(DocumentError):
    def __init__(self):
        super().__init__("El cliente es requerido")


class InvalidTransition(DocumentError):
    def __init__(self, current, requested, reason: str | None = None):
        self.current = current
        self.requested = requested
        msg = f"Transición inválida: {current} → {requested}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class UnknownVariant(DocumentError):
    def __init__(self, variant_id):
        self.variant_id = variant_id
        super().__init__(f"Variante {variant_id} no encontrada")


class DocumentNotFound(LookupError):
    def __init__(self, document_id):
        self.document_id = document_id
        super().__init__(f"Documento {document_id} no encontrado")


class InsufficientStock(DocumentError):
    def __init__(self, label, available, requested):
        self.available = available
        self.requested = requested
        super().__init__(f"Stock insuficiente para \"{label}\". Disponible: {available}, requerido: {requested}")
