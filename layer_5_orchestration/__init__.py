"""
Layer 5: Pipeline Orchestration
- Weighted five-step pipeline with job progress reporting
- 24-hour result cache per post
- Store contracts and JSON-file stores
- Prerequisite checks and run time estimate
"""
from .stores import (
    CommentStore,
    ResultStore,
    JobStore,
    AccountDirectory,
    JsonCommentStore,
    JsonResultStore,
    JsonJobStore,
    JsonAccountDirectory,
)
from .orchestrator import PipelineOrchestrator, ANALYSIS_STEPS, estimate_analysis_time

__all__ = [
    'CommentStore',
    'ResultStore',
    'JobStore',
    'AccountDirectory',
    'JsonCommentStore',
    'JsonResultStore',
    'JsonJobStore',
    'JsonAccountDirectory',
    'PipelineOrchestrator',
    'ANALYSIS_STEPS',
    'estimate_analysis_time',
]
