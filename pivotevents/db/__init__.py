from .pivot import Pivot
from .relation import BelongsToMany, PivotRelation, Record
from .session import DbSession
from .statement import PivotStatement

__all__ = [
    "DbSession",
    "PivotStatement",
    "Pivot",
    "BelongsToMany",
    "PivotRelation",
    "Record",
]
