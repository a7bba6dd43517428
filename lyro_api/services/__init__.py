from lyro_api.services.errors import (
    ChatValidationError,
    PersistenceError,
    SchemaNegotiationError,
    UnauthorizedSessionError,
)
from lyro_api.services.result import Result
