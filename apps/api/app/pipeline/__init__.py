from app.pipeline.service import DEFAULT_PIPELINE_STAGES, ConversionResult, PipelineService, pipeline_service

__all__ = ["DEFAULT_PIPELINE_STAGES", "ConversionResult", "PipelineService", "pipeline_service"]
