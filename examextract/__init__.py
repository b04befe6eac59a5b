"""ExamExtract: MCQ extraction from PDF and Word exam documents."""

__version__ = "1.0.0"
