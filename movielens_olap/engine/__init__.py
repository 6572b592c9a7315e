"""
movielens_olap.engine: the aggregation core.

Pure in-memory computation; no file I/O.

Modules:
  strata      : StratumClassifier: rating → stratum keys.
  accumulator : Accumulator / AccumulatorEntry with exact, order-free sums
                 and associative, commutative merge.
  aggregation : fold_ratings(), sequential and chunked parallel drivers.
  ranker      : rank_accumulator() / rank_strata(): filter, sort, truncate.
"""
