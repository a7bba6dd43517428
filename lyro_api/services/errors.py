class ChatValidationError(Exception):
    """Inbound message is missing or blank."""


class UnauthorizedSessionError(Exception):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} belongs to another client")


class PersistenceError(Exception):
    """Storage collaborator failed; callers log it and carry on."""


class SchemaNegotiationError(Exception):
    def __init__(self, table: str, missing: list[str]):
        self.table = table
        self.missing = missing
        super().__init__(f"Table {table!r} is missing columns for: {', '.join(missing)}")
