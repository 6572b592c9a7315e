"""
movielens_olap.ingestion: format-specific dataset loaders.

Modules:
  loaders: ml-100k (pipe), ml-10m (double colon) and ml-25m (CSV) parsers
            producing a RecordStore; malformed lines are skipped and counted.
"""
