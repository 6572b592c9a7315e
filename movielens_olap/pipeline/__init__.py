"""
movielens_olap.pipeline: auditable stages wrapping the engine.

Modules:
  base  : PipelineStage ABC: RunMetadata lifecycle, centralized error handling.
  report: LoadStage, ReportStage and generate_report_set().
"""
