"""
PixelHarmonics Exceptions

Exception hierarchy for error handling.

Structural problems (missing bands, bad harmonic order, mismatched shapes)
raise. Per-pixel numerical problems never raise: they become NaN markers in
the output, with an optional warning.
"""


class PixelHarmonicsError(Exception):
    """Base exception for PixelHarmonics"""

    pass


class ConfigurationError(PixelHarmonicsError):
    """Invalid band, order, shape or option configuration"""

    pass


class DataSourceError(PixelHarmonicsError):
    """Scene loading or scene discovery failed"""

    pass


class NumericInstabilityWarning(UserWarning):
    """Some pixels were rejected as rank-deficient or ill-conditioned"""

    pass
