"""
Export, report and shareable-state encoding.

Supports:
- CSV / JSON export of timeline entries and analytics
- Summary and detailed timeline reports, executive summary
- JSON filter state and URL query parameter encoding
"""

from .reports import REPORT_FORMATS, ExecutiveSummary, Report, executive_summary, generate_report
from .tabular import (
    TIMELINE_COLUMNS,
    analytics_to_csv,
    analytics_to_json,
    timeline_to_csv,
    timeline_to_json,
)
from .url_state import (
    FilterState,
    export_filter_state,
    from_query_params,
    import_filter_state,
    parse_shareable_url,
    shareable_url,
    to_query_params,
)

__all__ = [
    "REPORT_FORMATS",
    "TIMELINE_COLUMNS",
    "ExecutiveSummary",
    "FilterState",
    "Report",
    "analytics_to_csv",
    "analytics_to_json",
    "executive_summary",
    "export_filter_state",
    "from_query_params",
    "generate_report",
    "import_filter_state",
    "parse_shareable_url",
    "shareable_url",
    "timeline_to_csv",
    "timeline_to_json",
    "to_query_params",
]
