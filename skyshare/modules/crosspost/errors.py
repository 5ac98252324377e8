"""
Cross-post errors.

Every failure the Bluesky integration can report derives from CrossPostError,
so task handlers can catch the whole family in one place.
"""


class CrossPostError(Exception):
    """Base class for cross-posting failures."""

    def to_dict(self):
        return {'error_type': type(self).__name__, 'message': str(self)}


class NotConfigured(CrossPostError):
    """Domain, identifier, token or DID is missing. A valid steady state, not a fault."""


class TransportError(CrossPostError):
    """No usable answer from the service: DNS, TLS, timeout, or a 5xx status."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self):
        data = super().to_dict()
        data['status_code'] = self.status_code
        return data


class AuthError(CrossPostError):
    """The remote service rejected a login, refresh or authenticated request."""

    def __init__(self, message, status_code=None, error=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.body = body

    def to_dict(self):
        data = super().to_dict()
        data['status_code'] = self.status_code
        if self.error:
            data['remote_error'] = self.error
        return data


class MalformedResponse(CrossPostError):
    """A 2xx response whose JSON body lacks the expected fields."""

    def __init__(self, message, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])

    def to_dict(self):
        data = super().to_dict()
        data['missing'] = self.missing
        return data
