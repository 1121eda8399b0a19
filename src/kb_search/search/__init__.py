"""
Search indexing and query core.

- analyzers: Tokenizers and filters (lowercase, stop, stemming)
- indexing_utils: Field normalization and the shared position space
- models / inverted_index: Immutable posting lists and the term index
- document_store: Index entries and facet maps
- query_planner: Filters to text terms and facet predicates
- stats / ranker / snippet: BM25, recency ordering and highlights
- snapshot / index_writer: Copy-on-write publication of index state
"""
