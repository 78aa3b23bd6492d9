from pydantic import BaseModel


class ScrollResult(BaseModel):
    """One scroll page, or every page of a scroll collected by do_scroll_all().

    Attributes:
        result:           Raw point dicts as returned by the backend.
        status:           Backend status string (e.g. "ok").
        time:             Backend execution time of the request.
        next_page_offset: Cursor of the next page, None on the last page and
                          on results of do_scroll_all().
    """

    result: list[dict]
    status: str
    time: float
    next_page_offset: str | None = None
