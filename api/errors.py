"""
Domain exceptions raised by the storage and odometer layers.

They carry no HTTP knowledge; ``main.py`` maps them to status codes:

    DomainError          400
    InvalidImage         400
    InvalidReading       400
    InsufficientBalance  400
    NotFound             404
    Conflict             409
"""


class DomainError(Exception):
    def __init__(self, message="A business rule was violated."):
        self.message = message
        super().__init__(self.message)


class NotFound(DomainError):
    def __init__(self, message="The requested resource was not found."):
        super().__init__(message)


class UserNotFound(NotFound):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class Conflict(DomainError):
    def __init__(self, message="The operation conflicts with the current state."):
        super().__init__(message)


class DuplicateEmail(Conflict):
    def __init__(self, email):
        self.email = email
        super().__init__("User already exists")


class InvalidImage(DomainError):
    def __init__(self, message="Uploaded file is not a valid image"):
        super().__init__(message)


class InsufficientBalance(DomainError):
    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__("Insufficient balance")


class InvalidReading(DomainError):
    def __init__(self, reading):
        self.reading = reading
        super().__init__("Odometer reading is out of range")
