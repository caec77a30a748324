from collections import namedtuple

from elexconformal.exceptions import InputParameterException
from elexconformal.utils.constants import AGGREGATE_ORDER, VALID_AGGREGATES_MAPPING

Aggregate = namedtuple("Aggregate", ["label", "columns"])


def get_aggregate(aggregate) -> Aggregate:
    """
    Resolves an aggregate into the ordered columns that units are grouped by.
    aggregate is either the name of one aggregate attribute (ie. "district") or a list of them.
    Every aggregate is nested inside postal_code, so postal_code is always the first column.
    """
    names = [aggregate] if isinstance(aggregate, str) else list(aggregate)
    invalid_aggregates = [name for name in names if name not in AGGREGATE_ORDER]
    if len(names) == 0 or len(invalid_aggregates) > 0:
        raise InputParameterException(f"Aggregate(s): {invalid_aggregates or names} not valid.")

    columns = sorted(set(["postal_code"] + names), key=lambda x: AGGREGATE_ORDER.index(x))
    # the table is named after the finest attribute we group by
    label = VALID_AGGREGATES_MAPPING[columns[-1]]
    return Aggregate(label, columns)
