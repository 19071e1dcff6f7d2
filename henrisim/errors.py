"""Exceptions raised by the simulation core."""


class HenriSimError(Exception):
    """Base class for simulation errors."""


class ConfigurationError(HenriSimError, ValueError):
    """Invalid or unknown configuration (city, seasonal date, config file)."""


class ClimateError(ConfigurationError):
    """Climate data could not be generated for the requested location/date."""


class ValidationError(ConfigurationError):
    """A configuration value is outside its documented range."""

    def __init__(self, category, field, value, valid_range):
        self.category = category
        self.field = field
        self.value = value
        self.valid_range = valid_range
        low, high, unit = valid_range
        super().__init__(
            f"{category}.{field}={value} is invalid. Valid range: {low} - {high} {unit}".rstrip()
        )


class ModuleIntegrityError(HenriSimError):
    """A registered module has no callable simulate()."""
