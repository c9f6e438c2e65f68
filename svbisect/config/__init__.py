"""Configuration module for svbisect.

This module contains configuration classes for svn bisection sessions.
"""

from svbisect.config.config import BisectConfig, StateConfig, SvnConfig


__all__ = ["BisectConfig", "StateConfig", "SvnConfig"]
