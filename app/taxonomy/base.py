"""
Value objects shared by the species resolution pipeline.

Provides:
- Detection: a labeled candidate from the vision collaborator
- SpeciesOption: a plausible species query presented for disambiguation
- TaxonCandidate: a parsed record from the species search service
- ResolvedSpecies: the canonical output entity
- ImageResult: outcome of the image provider cascade

All of them are frozen; stages produce updated copies with
dataclasses.replace instead of mutating shared records.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Tuple, Mapping

from app.models.enums import (
    TaxonomicStatus,
    DetectionSource,
    OptionSource,
    ImageProvider,
)

UNKNOWN = "unknown"
DEFAULT_DOMAIN = "eukaryota"
SPECIES_RANK = "SPECIES"

# Ranks counted by the completeness score
SCORED_RANKS: Tuple[str, ...] = (
    "kingdom", "phylum", "class", "order", "family", "genus", "species",
)

# Ranks the hierarchy enricher tries to fill
HIERARCHY_RANKS: Tuple[str, ...] = (
    "kingdom", "phylum", "class", "order", "family", "genus",
)


def rank_attribute(rank: str) -> str:
    """Dataclass attribute holding a rank ("class" is a keyword)."""
    return "class_" if rank == "class" else rank


def is_present(value: Optional[str]) -> bool:
    """True for a non-empty rank value other than the "unknown" placeholder."""
    return bool(value) and value.strip().lower() != UNKNOWN


def lower_or_unknown(value: Optional[str]) -> str:
    if value is None:
        return UNKNOWN
    value = str(value).strip().lower()
    return value or UNKNOWN


def _parse_key(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Detection:
    """Single labeled detection from the vision collaborator."""
    description: str
    score: float
    source: DetectionSource = DetectionSource.LABEL
    mid: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "score": self.score,
            "source": self.source.value,
            "mid": self.mid,
        }


@dataclass(frozen=True)
class SpeciesOption:
    """Candidate species query offered to the caller."""
    name: str
    score: float
    source: OptionSource
    image: Optional[str] = None

    def with_image(self, image: Optional[str]) -> "SpeciesOption":
        return replace(self, image=image)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "source": self.source.value,
            "image": self.image,
        }


@dataclass(frozen=True)
class VernacularName:
    """Common name for a taxon, optionally tagged with an ISO 639-2 language."""
    name: str
    language: Optional[str] = None

    @classmethod
    def from_gbif(cls, record: Mapping[str, Any]) -> Optional["VernacularName"]:
        name = _clean(record.get("vernacularName"))
        if not name:
            return None
        return cls(name=name, language=_clean(record.get("language")))


@dataclass(frozen=True)
class TaxonCandidate:
    """
    Raw taxon record returned by the species search service.

    Rank fields keep the upstream casing and are None when absent;
    lower-casing happens when a ResolvedSpecies is built.
    """
    key: Optional[int]
    scientific_name: str
    canonical_name: Optional[str] = None
    taxonomic_status: TaxonomicStatus = TaxonomicStatus.UNKNOWN
    rank: Optional[str] = None
    domain: Optional[str] = None
    kingdom: Optional[str] = None
    phylum: Optional[str] = None
    class_: Optional[str] = None
    order: Optional[str] = None
    family: Optional[str] = None
    genus: Optional[str] = None
    species: Optional[str] = None
    vernacular_names: Tuple[VernacularName, ...] = ()
    accepted_key: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_gbif(cls, record: Mapping[str, Any]) -> "TaxonCandidate":
        """Parse a GBIF species search hit or species detail record."""
        vernaculars = []
        for item in record.get("vernacularNames") or []:
            if isinstance(item, Mapping):
                parsed = VernacularName.from_gbif(item)
                if parsed:
                    vernaculars.append(parsed)

        accepted_key = _parse_key(record.get("acceptedKey"))
        if accepted_key is None:
            # "accepted" is normally the accepted name; only a numeric value is a key
            accepted_key = _parse_key(record.get("accepted"))

        rank = _clean(record.get("rank"))
        return cls(
            key=_parse_key(record.get("key")),
            scientific_name=_clean(record.get("scientificName")) or "",
            canonical_name=_clean(record.get("canonicalName")),
            taxonomic_status=TaxonomicStatus.from_value(record.get("taxonomicStatus")),
            rank=rank.upper() if rank else None,
            domain=_clean(record.get("domain")),
            kingdom=_clean(record.get("kingdom")),
            phylum=_clean(record.get("phylum")),
            class_=_clean(record.get("class")),
            order=_clean(record.get("order")),
            family=_clean(record.get("family")),
            genus=_clean(record.get("genus")),
            species=_clean(record.get("species")),
            vernacular_names=tuple(vernaculars),
            accepted_key=accepted_key,
            raw=dict(record),
        )

    @property
    def display_name(self) -> str:
        """Canonical name when known, otherwise the scientific name."""
        return self.canonical_name or self.scientific_name

    @property
    def is_species_rank(self) -> bool:
        return (self.rank or "").upper() == SPECIES_RANK

    def rank_value(self, rank: str) -> Optional[str]:
        return getattr(self, rank_attribute(rank))

    def with_ranks(self, values: Mapping[str, Optional[str]]) -> "TaxonCandidate":
        return replace(self, **{rank_attribute(k): v for k, v in values.items()})


@dataclass(frozen=True)
class ResolvedSpecies:
    """
    Canonical output entity.

    Every rank field is a non-empty lower-case string or "unknown".
    synonym_of carries the original scientific name when a synonym
    was replaced by its accepted taxon.
    """
    scientific_name: str
    taxonomic_status: TaxonomicStatus = TaxonomicStatus.UNKNOWN
    rank: str = UNKNOWN
    domain: str = DEFAULT_DOMAIN
    kingdom: str = UNKNOWN
    phylum: str = UNKNOWN
    class_: str = UNKNOWN
    order: str = UNKNOWN
    family: str = UNKNOWN
    genus: str = UNKNOWN
    species: str = UNKNOWN
    gbif_key: Optional[int] = None
    preferred_common_name: Optional[str] = None
    reference_image: Optional[str] = None
    image_source: Optional[str] = None
    synonym_of: Optional[str] = None

    def rank_value(self, rank: str) -> str:
        return getattr(self, rank_attribute(rank))

    def missing_ranks(self, ranks: Tuple[str, ...] = HIERARCHY_RANKS) -> List[str]:
        return [r for r in ranks if not is_present(self.rank_value(r))]

    def with_ranks(self, values: Mapping[str, Optional[str]]) -> "ResolvedSpecies":
        """Copy with the given ranks set (lower-cased, "unknown" when empty)."""
        return replace(
            self,
            **{rank_attribute(k): lower_or_unknown(v) for k, v in values.items()}
        )

    def with_image(self, url: Optional[str], source: Optional[str]) -> "ResolvedSpecies":
        return replace(self, reference_image=url, image_source=source)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "scientific_name": self.scientific_name,
            "taxonomic_status": self.taxonomic_status.value,
            "rank": self.rank,
            "domain": self.domain,
            "kingdom": self.kingdom,
            "phylum": self.phylum,
            "class": self.class_,
            "order": self.order,
            "family": self.family,
            "genus": self.genus,
            "species": self.species,
            "gbif_key": self.gbif_key,
            "preferred_common_name": self.preferred_common_name,
            "reference_image": self.reference_image,
            "image_source": self.image_source,
            "synonym_of": self.synonym_of,
        }


@dataclass(frozen=True)
class ImageResult:
    """Outcome of the image provider cascade for one taxon."""
    url: Optional[str] = None
    provider: Optional[ImageProvider] = None

    @property
    def found(self) -> bool:
        return self.url is not None

    @property
    def source(self) -> Optional[str]:
        return self.provider.value if self.provider else None
