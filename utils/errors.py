# utils/errors.py
"""Error taxonomy of the invite service.

Every error carries the HTTP status it maps to at the boundary, so the
blueprint can render any of them the same way.
"""


class InviteError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(InviteError):
    status_code = 400
    message = 'Invalid request'


class SecretMismatch(ValidationError):
    message = 'Secret does not correspond to the provided address'


class AddressNotRegistered(ValidationError):
    message = 'Address does not exist on the contract'


class AddressAlreadyClaimed(ValidationError):
    message = 'Address has already been used'


class Unauthorized(InviteError):
    status_code = 401
    message = 'Unauthorized'


class NotFound(InviteError):
    status_code = 404
    message = 'Invite not found'


class NoInviteAvailable(InviteError):
    status_code = 404
    message = 'No available invites'


class DuplicateSecret(InviteError):
    status_code = 409
    message = 'Secret already exists'


class StoreError(InviteError):
    status_code = 500
    message = 'Invite store failure'


class OracleUnavailable(InviteError):
    status_code = 502
    message = 'Failed to verify invite status on-chain'
