"""pkgsyms: workspace-wide symbol search across source packages."""

__version__ = "0.1.0"
