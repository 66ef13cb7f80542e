"""
canvassiq - Voter-contact question answering with grounded, checked answers

Campaign staff ask free-text or structured questions against a log of
voter-contact attempts; the package turns the question into filters, computes
the numbers deterministically and checks any generated phrasing against them.

Main Components:
    - canvassiq.query.extractor: free text -> structured query parameters
    - canvassiq.query.filters: strict filtering with relaxed person fallback
    - canvassiq.query.aggregation: scalar totals and metric roll-ups
    - canvassiq.query.guard: validation and deterministic answer synthesis
    - canvassiq.cli: command line interface
"""

from .models import QueryParams, VoterMetrics
from .records import ContactRecord, load_records

__version__ = "0.3.0"

__all__ = ["ContactRecord", "QueryParams", "VoterMetrics", "load_records"]
