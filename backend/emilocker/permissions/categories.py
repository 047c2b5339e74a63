# Overview: Operation categories used to group access-controlled operations.


class OperationCategory:
    """Operation categories; also used as ActivityLog categories."""
    DEVICE = "device"
    USER = "user"
    SHOP = "shop"
    PAYMENT = "payment"
    SECURITY = "security"
    ADMIN = "admin"


ALL_CATEGORIES = (
    OperationCategory.DEVICE,
    OperationCategory.USER,
    OperationCategory.SHOP,
    OperationCategory.PAYMENT,
    OperationCategory.SECURITY,
    OperationCategory.ADMIN,
)
