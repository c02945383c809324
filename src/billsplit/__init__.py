"""Receipt bill splitter: normalization, editing and proportional settlement of shared bills."""

__version__ = "1.0.0"
