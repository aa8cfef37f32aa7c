from lpvault.persistence.sqlite.engine_state_repo import SqliteEngineStateRepo
from lpvault.persistence.sqlite.token_repo import SqliteTokenRepo

__all__ = ["SqliteEngineStateRepo", "SqliteTokenRepo"]
