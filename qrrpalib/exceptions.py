"""
Exceptions raised by the QRRPA pipeline.

Validation problems are never raised; they are collected as findings and
errors on the ValidationResult. Only undecodable input and an unusable
ordinance store surface as exceptions.
"""


class QrrpaError(Exception):
    """Base exception for the package"""
    pass


class ParseError(QrrpaError):
    """Raised when an uploaded file cannot be decoded into a cell grid"""

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class ConfigError(QrrpaError):
    """Raised when the ordinance configuration cannot be written"""
    pass
