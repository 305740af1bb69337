'''Error types raised by the ledger and payroll services.'''


class LedgerError(Exception):
    code = 'LEDGER_ERROR'

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(LedgerError, ValueError):
    '''Malformed or missing input. Raised before any computation or write.'''
    code = 'VALIDATION_ERROR'


class OutOfBalanceError(LedgerError):
    '''Debits and credits of a draft entry differ. Always a caller or template defect.'''
    code = 'OUT_OF_BALANCE'


class AccountResolutionError(LedgerError):
    code = 'ACCOUNT_RESOLUTION_ERROR'


class StateConflictError(LedgerError):
    '''Operation attempted against an entity in the wrong lifecycle state.'''
    code = 'STATE_CONFLICT'


class PersistenceError(LedgerError):
    code = 'PERSISTENCE_ERROR'
