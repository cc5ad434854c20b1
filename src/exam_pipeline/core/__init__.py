# ============================================================================
# src/exam_pipeline/core/__init__.py
# ============================================================================
"""
Core pipeline: models, merging, progress, retry and persistence coordination
"""
