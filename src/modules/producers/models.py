"""Producer (buyer) master data with CPF/CNPJ validation.

Rules implemented:
- Document must be a valid CPF or CNPJ and is unique in the system.
- Inactive producers cannot open orders (enforced at service layer).
- ``planting_area`` (hectares) feeds the segmented discount lookup.
- Sensitive data (CPF/CNPJ) masked in ``__str__`` and logs.
"""

from __future__ import annotations

import re
from decimal import Decimal

import structlog
from validate_docbr import CNPJ, CPF

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class DocumentType(models.TextChoices):
    CPF = "CPF", "CPF"
    CNPJ = "CNPJ", "CNPJ"


class Producer(SoftDeleteModel):
    """Rural producer placing orders with suppliers.

    ``document`` stores only digits (sanitised on save).
    """

    name = models.CharField(max_length=255)
    document = models.CharField(max_length=14, unique=True)
    document_type = models.CharField(max_length=4, choices=DocumentType.choices)
    planting_area = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "producers"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active"], name="producers_active_idx"),
        ]

    @staticmethod
    def _sanitize_document(value: str) -> str:
        return re.sub(r"\D", "", value)

    def clean(self) -> None:
        super().clean()
        if self.document:
            self.document = self._sanitize_document(self.document)
        self._validate_document()

    def _validate_document(self) -> None:
        """Validate CPF or CNPJ using *validate-docbr*."""
        if self.document_type == DocumentType.CPF:
            validator = CPF()
        elif self.document_type == DocumentType.CNPJ:
            validator = CNPJ()
        else:
            raise ValidationError({"document_type": "Invalid document type."})

        if not validator.validate(self.document):
            logger.warning(
                "producer.invalid_document",
                document_type=self.document_type,
                document_suffix=self.document[-4:] if self.document else "",
            )
            raise ValidationError({"document": f"Invalid {self.document_type} number."})

    def save(self, *args, **kwargs) -> None:
        if self.document:
            self.document = self._sanitize_document(self.document)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        suffix = self.document[-4:] if self.document else "????"
        return f"{self.name} ({self.document_type}: ***{suffix})"
