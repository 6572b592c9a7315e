"""MovieLens OLAP: stratified top-N rating reports with sequential and parallel folds."""

__version__ = "0.1.0"
