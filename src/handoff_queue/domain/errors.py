"""Exceptions raised by the handoff queue."""


class QueueError(Exception):
    """Base class for queue failures that must stop the caller's flow."""


class ItemNotFoundError(QueueError):
    """The referenced handoff item does not exist."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__("Item not found")


class NotAssignedError(QueueError):
    """An operator tried to act on an item they do not hold."""

    def __init__(self, item_id: str, operator_id: str):
        self.item_id = item_id
        self.operator_id = operator_id
        super().__init__("Not assigned to you")


class NoOperatorsAvailableError(QueueError):
    """No available operator has spare capacity for the client."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__("No operators available")


class InvalidTransitionError(QueueError):
    """The item's current status does not allow the requested change."""

    def __init__(self, item_id: str, status: str, action: str):
        self.item_id = item_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} item {item_id} in status '{status}'")


class ConcurrentModificationError(QueueError):
    """A conditional write lost against a concurrent write to the same item."""

    def __init__(self, item_id: str, expected_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        super().__init__(
            f"Concurrent modification: item {item_id} changed since version {expected_version}"
        )
