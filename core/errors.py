# core/errors.py


class MechaSenseError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(MechaSenseError):
    pass


class TransportError(MechaSenseError):
    """
    Broker connection could not be established or was given up
    after the reconnect ceiling.
    """


class PredictorUnavailable(MechaSenseError):
    """
    Remote failure predictor unreachable or returned something
    that is not a valid prediction.
    """


class CatalogError(MechaSenseError):
    """Knowledge base (symptoms / rules) is inconsistent."""


class InvalidAnswerError(MechaSenseError, ValueError):
    """Operator answer is not one of No / Sometimes / Yes."""
