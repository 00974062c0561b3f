"""Live tick processing: detection, filtering and paper execution."""

from .signal_pipeline import PipelineEvent, SignalPipeline

__all__ = ['PipelineEvent', 'SignalPipeline']
