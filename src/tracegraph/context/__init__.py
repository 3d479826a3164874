"""Defect context — discovery, scoring and chunking of relevant code."""

from tracegraph.context.assembler import ContextAssembler
from tracegraph.context.chunking import chunk_content
from tracegraph.context.fallback import build_fallback
from tracegraph.context.mentions import MentionExtractor, RegexMentionExtractor
from tracegraph.context.scoring import CandidateSignals, HeuristicScorer, RelevanceScorer
from tracegraph.context.types import (
    BundleMetadata,
    ContextBundle,
    DefectReport,
    FileContext,
    PackageDependencies,
    ProjectStructure,
    Relationship,
)

__all__ = [
    "BundleMetadata",
    "CandidateSignals",
    "ContextAssembler",
    "ContextBundle",
    "DefectReport",
    "FileContext",
    "HeuristicScorer",
    "MentionExtractor",
    "PackageDependencies",
    "ProjectStructure",
    "RegexMentionExtractor",
    "Relationship",
    "RelevanceScorer",
    "build_fallback",
    "chunk_content",
]
