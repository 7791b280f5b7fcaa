"""
Comment convention table: how headers are wrapped per artifact kind.

Public API::

    from headercore.conventions import (
        CommentConvention,
        ConventionLoader,
        ConventionTable,
        KindConventions,
        default_convention_table,
        load_convention_table,
    )
"""

from headercore.conventions.loader import (
    ConventionLoader,
    default_convention_table,
    load_convention_table,
)
from headercore.conventions.schema import (
    CommentConvention,
    ConventionTable,
    KindConventions,
)

__all__ = [
    "CommentConvention",
    "ConventionLoader",
    "ConventionTable",
    "KindConventions",
    "default_convention_table",
    "load_convention_table",
]
