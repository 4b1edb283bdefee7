"""
Layer 4: Summary Generation
- LLM narrative summary with retry and template fallback
- Emotion inference from themes
- Rule-based key insights and recommendations
- Summary quality validation
"""
from .insights import analyze_emotions, generate_key_insights, generate_recommendations
from .summary_validator import validate_summary
from .summary_generator import SummaryGenerator, clean_summary_text

__all__ = [
    'analyze_emotions',
    'generate_key_insights',
    'generate_recommendations',
    'validate_summary',
    'SummaryGenerator',
    'clean_summary_text',
]
