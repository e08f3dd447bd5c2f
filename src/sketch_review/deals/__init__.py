"""Deal-centric PO portal logic -- association resolution, views, and PO submission.

Provides the RelationalResolver (deal -> line items / quote / contacts with
role selection), the view assembler (totals, defaults, derived fields), and
the SubmissionPipeline (upload -> note -> patch -> notify with per-step
failure policy).
"""

from src.sketch_review.deals.assembler import (
    assemble_deal_view,
    assemble_po_quote_view,
    assemble_po_review_view,
    compute_total,
)
from src.sketch_review.deals.resolver import RelationalResolver, resolve_contact_roles
from src.sketch_review.deals.submission import (
    SubmissionPipeline,
    resolve_recipients,
    validate_upload,
)

__all__ = [
    "RelationalResolver",
    "SubmissionPipeline",
    "assemble_deal_view",
    "assemble_po_quote_view",
    "assemble_po_review_view",
    "compute_total",
    "resolve_contact_roles",
    "resolve_recipients",
    "validate_upload",
]
