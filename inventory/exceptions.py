from rest_framework import status
from rest_framework.exceptions import APIException


class InsufficientStock(APIException):
    """
    Raised when a stock-out asks for more than the item currently holds.
    Nothing has been written when this is raised.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'insufficient_stock'

    def __init__(self, item, required, available):
        self.item = item
        self.required = required
        self.available = available
        detail = {
            'error': f"Insufficient stock. Available: {available} {item.unit_of_measure}",
            'inventory_item': item.name,
            'inventory_item_id': item.pk,
            'required': str(required),
            'available': str(available),
        }
        super().__init__(detail=detail, code=self.default_code)


class PersistenceFailure(APIException):
    """The stock write could not be committed; nothing was persisted."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The stock change could not be saved. Please retry the operation.'
    default_code = 'persistence_failure'
