"""Interface between the Kaleidoscope frontend and a code generation + execution backend."""

from abc import ABC, abstractmethod


class Backend(ABC):
    """Consumes one unit at a time. Implementations own name resolution: unknown names, wrong call arity and
    conflicting redefinitions are reported as BackendErrors.
    """

    @abstractmethod
    def declare_or_define(self, unit):
        """Declares a Prototype (extern) or defines a Function. Raises BackendError on failure, in which case nothing
        from unit is kept.
        """

    @abstractmethod
    def execute_anonymous(self, function):
        """Runs a previously defined anonymous wrapper Function and returns its float result. Raises BackendError."""
