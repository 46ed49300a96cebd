"""DriftGuard: stigmergic coordination through time-decaying pheromones."""

__version__ = "0.1.0"
