class PreventaException(Exception):
    """Base exception for all domain exceptions"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class EntityNotFoundError(PreventaException):
    """Raised when an entity is not found in the catalog cache or in the cart"""
    pass

class BusinessLogicError(PreventaException):
    """Raised when a cart edit violates a business rule"""
    pass
