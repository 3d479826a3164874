"""tracegraph: code graphs and defect context for JavaScript/TypeScript repositories.

Walk a repository, persist its files, declarations and imports as a graph,
and assemble ranked code context for reported defects.
"""

__version__ = "0.1.0"

from tracegraph._service import TraceGraph
from tracegraph.analyzer import AnalysisProgress, AnalysisResult, AnalysisState, RepositoryAnalyzer
from tracegraph.context import (
    ContextAssembler,
    ContextBundle,
    DefectReport,
    FileContext,
    HeuristicScorer,
    MentionExtractor,
    RegexMentionExtractor,
    RelevanceScorer,
    build_fallback,
    chunk_content,
)
from tracegraph.graph import (
    GraphIndex,
    GraphPersistence,
    GraphSnapshot,
    NullGraphIndex,
    RustworkxGraphIndex,
    SupportsDependencyQueries,
    open_graph_index,
)
from tracegraph.models import CodeEdge, CodeNode, DefectRecord, EdgeType, NodeType
from tracegraph.parsing import ParserRegistry, is_analyzable
from tracegraph.ref import SymbolRef, file_ref
from tracegraph.settings import Settings
from tracegraph.source import GitHubSourceClient, RepositoryRef, SourceClient
from tracegraph.walker import RepositoryWalker

__all__ = [
    "AnalysisProgress",
    "AnalysisResult",
    "AnalysisState",
    "CodeEdge",
    "CodeNode",
    "ContextAssembler",
    "ContextBundle",
    "DefectRecord",
    "DefectReport",
    "EdgeType",
    "FileContext",
    "GitHubSourceClient",
    "GraphIndex",
    "GraphPersistence",
    "GraphSnapshot",
    "HeuristicScorer",
    "MentionExtractor",
    "NodeType",
    "NullGraphIndex",
    "ParserRegistry",
    "RegexMentionExtractor",
    "RelevanceScorer",
    "RepositoryAnalyzer",
    "RepositoryRef",
    "RepositoryWalker",
    "RustworkxGraphIndex",
    "Settings",
    "SourceClient",
    "SupportsDependencyQueries",
    "SymbolRef",
    "TraceGraph",
    "build_fallback",
    "chunk_content",
    "file_ref",
    "is_analyzable",
    "open_graph_index",
]
