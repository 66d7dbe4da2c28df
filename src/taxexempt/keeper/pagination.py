"""
Paged enumeration over a prefix store.

filtered_paginate walks a PrefixStore in key order and hands every record
to a callback that decides whether the record matches and, when asked
to accumulate, collects it. Offsets and limits count matching records
only, so a filtered listing pages the same way an unfiltered one does.

The continuation cursor (next_key) is the store key of the first
matching record after the page. Resuming from it is correct even if
records were added or removed between pages.
"""

from typing import Callable

from taxexempt.errors import InvalidPaginationError
from taxexempt.schema import PageRequest, PageResponse
from taxexempt.store import PrefixStore

# on_result(key, value, accumulate) -> matched
OnResult = Callable[[bytes, bytes, bool], bool]


def filtered_paginate(
    store: PrefixStore,
    page_request: PageRequest | None,
    on_result: OnResult,
) -> PageResponse:
    """
    Paginate over ``store`` using ``on_result`` as filter and collector.

    Args:
        store: Prefix store to enumerate
        page_request: Paging parameters (None = everything, ascending)
        on_result: Called for each record with ``accumulate`` True when a
            matching record falls inside the requested page. Returns
            whether the record matched.

    Returns:
        PageResponse with next_key set when matching records remain,
        and total set when count_total was requested in offset mode.

    Raises:
        InvalidPaginationError: If both key and a non-zero offset are given

    Negative offset or limit never get here: PageRequest rejects them
    with a pydantic ValidationError when it is built.
    """
    if page_request is None:
        page_request = PageRequest()

    key = page_request.key
    if key is not None and page_request.offset > 0:
        raise InvalidPaginationError(
            message="invalid request, either offset or key is expected, got both",
        )

    reverse = page_request.reverse
    if key is None:
        records = store.iterator(reverse=reverse)
    elif reverse:
        # resume at key inclusive, walking downwards
        records = store.iterator(end=key + b"\x00", reverse=True)
    else:
        records = store.iterator(start=key)

    offset = page_request.offset
    end = offset + page_request.limit if page_request.limit else None
    count_total = page_request.count_total and key is None

    hits = 0
    next_key = None
    for record_key, value in records:
        accumulate = hits >= offset and (end is None or hits < end)
        if not on_result(record_key, value, accumulate):
            continue
        hits += 1
        if end is not None and hits == end + 1:
            next_key = record_key
            if not count_total:
                break

    return PageResponse(
        next_key=next_key,
        total=hits if count_total else None,
    )
