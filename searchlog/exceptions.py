"""Search log error taxonomy."""


class SearchLogError(Exception):
    """Base class for search log failures."""

    @property
    def reason(self) -> str:
        return type(self).__name__


class InvalidSearchType(SearchLogError):
    """search_type is not a recognized variant."""


class MissingActor(SearchLogError):
    """Neither an IP address nor a user id identifies the searcher."""


class BlankTerm(SearchLogError):
    """Search term is empty after stripping whitespace."""


class Unavailable(SearchLogError):
    """Store or cache could not be reached."""
