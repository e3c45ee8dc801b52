"""Declaring, composing and launching applications."""

from strata.application.builder import Application
from strata.application.composer import MISSING_ROUTER, ComposedApplication, compose
from strata.application.features import get_configuration
from strata.application.state import ApplicationState, Feature

__all__ = [
    "MISSING_ROUTER",
    "Application",
    "ApplicationState",
    "ComposedApplication",
    "Feature",
    "compose",
    "get_configuration",
]
