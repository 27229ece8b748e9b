"""Driver-composable evolution engine for the spin and thermal state of compact stars."""
from . import constants, tags
from .errors import ConfigurationError, StarEvolError
from .system import EvolutionSystem

__all__ = ["constants", "tags", "ConfigurationError", "StarEvolError", "EvolutionSystem"]
