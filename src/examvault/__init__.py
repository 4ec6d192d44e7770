"""
ExamVault - reflective persistence engine for the exam-authoring backend.

- examvault.core: engine primitives, entity models and repositories
- examvault.cli: operator commands (``examvault --help``)
"""

__version__ = "0.1.0"
