"""Command/query layer coordinating the user, record, and DNC stores."""

from .service import CRMEngine

__all__ = ["CRMEngine"]
