"""
Synonym Resolver

Replaces a synonym record with its accepted taxon: fetch the synonym's
detail record, follow its accepted pointer, fetch the accepted record.
No retries; any failure means "no resolution available".
"""

import logging
from typing import Optional

from app.clients.gbif import GBIFClient
from app.core.events import EventSink, default_sink
from app.taxonomy.base import TaxonCandidate

logger = logging.getLogger(__name__)


class SynonymResolver:

    def __init__(
        self,
        gbif: GBIFClient,
        timeout: Optional[float] = None,
        events: Optional[EventSink] = None,
    ):
        self.gbif = gbif
        self.timeout = timeout
        self.events = events or default_sink(__name__)

    async def resolve(self, candidate: TaxonCandidate) -> Optional[TaxonCandidate]:
        """Accepted record for a synonym, or None."""
        if not candidate.taxonomic_status.is_synonym:
            return None
        if candidate.key is None:
            self.events.emit("synonym_unresolved", logging.DEBUG, name=candidate.scientific_name, reason="no_key")
            return None

        detail = await self.gbif.get_species(candidate.key, timeout=self.timeout)
        if not detail.ok:
            self.events.emit(
                "synonym_unresolved", logging.WARNING,
                name=candidate.scientific_name, reason=detail.error.value,
            )
            return None

        accepted_key = detail.value.accepted_key
        if accepted_key is None or accepted_key == candidate.key:
            self.events.emit(
                "synonym_unresolved", logging.DEBUG,
                name=candidate.scientific_name, reason="no_accepted_pointer",
            )
            return None

        accepted = await self.gbif.get_species(accepted_key, timeout=self.timeout)
        if not accepted.ok:
            self.events.emit(
                "synonym_unresolved", logging.WARNING,
                name=candidate.scientific_name, reason=accepted.error.value,
                accepted_key=accepted_key,
            )
            return None

        self.events.emit(
            "synonym_resolved",
            synonym=candidate.scientific_name,
            accepted=accepted.value.scientific_name,
            accepted_key=accepted_key,
        )
        return accepted.value
