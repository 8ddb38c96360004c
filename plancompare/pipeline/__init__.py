from plancompare.pipeline.quote_pipeline import DocumentOutcome, QuotePipeline

__all__ = ["DocumentOutcome", "QuotePipeline"]
