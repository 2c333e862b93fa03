# storefront/services/exceptions.py

class ServiceError(Exception):
    """Clase base para errores de la capa de servicio."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Entrada de dominio inválida."""
    pass


class ResourceNotFoundError(ServiceError):
    """Recurso no encontrado (o no perteneciente al llamador)."""
    pass


class ConflictError(ServiceError):
    """Conflicto de estado en la operación."""
    pass


class EmptyCartError(ServiceError):
    """Checkout de un carrito sin líneas."""
    pass


class CartConsistencyError(ServiceError):
    """La identidad resolvió pero no tiene carrito cuando debería."""
    pass


class GuestSessionError(ServiceError):
    """No se pudo crear la identidad de invitado."""
    pass


class OrderMaterializationError(ServiceError):
    """La sesión pagada no se puede convertir en orden (metadata, carrito o dueño faltante)."""
    pass
