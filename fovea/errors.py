class FoveaError(Exception):
    pass


class InvalidTransaction(FoveaError):
    """The transaction cannot be included: nothing was executed and no state was changed."""


class FatalInconsistency(FoveaError):
    """The external state could not be read or written consistently.
    The transaction cannot be processed and no partial state is committed."""
