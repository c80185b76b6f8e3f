# Species resolution pipeline stages
#
# Stages that talk to upstream services (common_names, synonym_resolver,
# hierarchy_enricher, image_sourcer) are imported from their modules
# directly; app.clients depends on app.taxonomy.base.
from app.taxonomy.base import (
    Detection,
    SpeciesOption,
    VernacularName,
    TaxonCandidate,
    ResolvedSpecies,
    ImageResult,
)
from app.taxonomy.vocabulary import Vocabulary, VocabularyLoader, get_vocabulary
from app.taxonomy.detection_filter import DetectionFilter, parse_annotations
from app.taxonomy.name_classifier import NameClassifier, is_likely_common_name
from app.taxonomy.match_selector import (
    MatchRule,
    completeness_score,
    select_best_match,
)
from app.taxonomy.deduplicator import deduplicate, normalize_species_name

__all__ = [
    "Detection",
    "SpeciesOption",
    "VernacularName",
    "TaxonCandidate",
    "ResolvedSpecies",
    "ImageResult",
    "Vocabulary",
    "VocabularyLoader",
    "get_vocabulary",
    "DetectionFilter",
    "parse_annotations",
    "NameClassifier",
    "is_likely_common_name",
    "MatchRule",
    "completeness_score",
    "select_best_match",
    "deduplicate",
    "normalize_species_name",
]
