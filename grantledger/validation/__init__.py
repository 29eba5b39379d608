"""Validation package."""

from grantledger.validation.validator import ExpenditureValidator

__all__ = ["ExpenditureValidator"]
