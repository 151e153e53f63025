class QuinielaServiceError(Exception):
    """Base error raised by the pool service and storage backends"""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class PoolNotFoundError(QuinielaServiceError):
    status_code = 404

    def __init__(self, pool_id):
        super().__init__(f"Quiniela {pool_id} not found")
        self.pool_id = pool_id


class MatchNotFoundError(QuinielaServiceError):
    status_code = 404

    def __init__(self, pool_id, match_id):
        super().__init__(f"Match {match_id} not found in quiniela {pool_id}")
        self.pool_id = pool_id
        self.match_id = match_id


class StalePoolError(QuinielaServiceError):
    """A pool was saved from a snapshot older than the stored one"""

    status_code = 409

    def __init__(self, pool_id, expected_version=None, stored_version=None):
        super().__init__(
            f"Quiniela {pool_id} was modified by someone else "
            f"(version {expected_version}, current {stored_version}). "
            "Reload and try again."
        )
        self.pool_id = pool_id
        self.expected_version = expected_version
        self.stored_version = stored_version
