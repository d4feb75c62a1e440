"""
Domain Exceptions

Base class for expected, operational failures (bad input, missing records,
wrong lifecycle step, conflicts). Anything that is not a DomainError is a
programming or infrastructure fault.
"""


class DomainError(Exception):
    """Expected failure with an HTTP-facing status and a stable error code"""

    status_code = 500
    code = 'error'
    default_message = 'Request failed'

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload
