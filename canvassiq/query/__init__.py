# canvassiq/query/__init__.py
"""Query pipeline.

Submodules:
    extractor   - free text to QueryParams, query shape and confidence
    filters     - strict record predicate plus relaxed person matching
    aggregation - metric selectors, scalar totals and VoterMetrics
    insights    - rule-based observations over VoterMetrics
    phrases     - tunable phrase lists for the answer guard
    guard       - answer validation and deterministic synthesis
    narrator    - DSPy answer phrasing and data-context rendering
    session     - end-to-end question answering with history
"""
