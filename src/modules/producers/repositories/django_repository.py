"""Django ORM implementation of the Producer repository."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog

from django.core.exceptions import ValidationError
from django.db import transaction

from modules.producers.models import Producer
from modules.producers.repositories.interfaces import IProducerRepository

logger = structlog.get_logger(__name__)


class ProducerDjangoRepository(IProducerRepository):
    """Concrete Producer repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Producer]:
        """Returns ``None`` for non-existent, soft-deleted or invalid IDs."""
        try:
            return Producer.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Producer]:
        queryset = Producer.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Producer) -> Producer:
        entity.full_clean()
        entity.save()
        logger.info("producer.saved", producer_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        producer = self.get_by_id(id)
        if not producer:
            return False
        producer.delete()
        logger.info("producer.soft_deleted", producer_id=str(id))
        return True

    def get_by_document(self, document: str) -> Optional[Producer]:
        digits = re.sub(r"\D", "", document)
        return Producer.objects.alive().filter(document=digits).first()
