# ============================================================================
# src/exam_pipeline/classifiers/__init__.py
# ============================================================================
"""
File classification
"""

from .file_classifier import FileClassifier, FileClassification, classify

__all__ = ["FileClassifier", "FileClassification", "classify"]
