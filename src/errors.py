"""
Error Taxonomy
Configuration errors abort the whole plan before any provider call.
Dependency errors abort only the affected branch.
Drift errors surface an existing resource whose parameters differ from the target.
"""

from typing import Dict, List, Optional


class ProvisioningError(Exception):
    """Base error. Names the environment/subject concerned and the precondition violated."""

    def __init__(self,
                 message: str,
                 environment: Optional[str] = None,
                 subject: Optional[str] = None,
                 precondition: Optional[str] = None):
        self.environment = environment
        self.subject = subject
        self.precondition = precondition
        # Filled in when the error aborts a plan run
        self.results: List = []
        self.summary: Optional[Dict] = None
        super().__init__(message)


class ConfigurationError(ProvisioningError):
    """Fatal, pre-execution"""


class DependencyError(ProvisioningError):
    """A step's input was never produced by an earlier step"""


class DriftError(ProvisioningError):
    """An existing resource has mismatched parameters"""
