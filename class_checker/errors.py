# Error taxonomy.
#
# Query-phase errors (CatalogError subclasses) are isolated to one section.
# StoreLoadError aborts a whole pass. PersistError and NotifyError are
# reported per section and never stop the pass.


class ClassCheckerError(Exception):
    """Base for every error raised by class_checker."""


class CatalogError(ClassCheckerError):
    kind = "catalog_error"


class Unreachable(CatalogError):
    """Transport failure talking to the catalog service."""
    kind = "unreachable"


class NotFound(CatalogError):
    """Section absent from the catalog response, or flagged as not available."""
    kind = "not_found"


class Unparseable(CatalogError):
    """Response body does not match the expected schema or markup."""
    kind = "unparseable"


class StoreLoadError(ClassCheckerError):
    kind = "store_load_error"


class PersistError(ClassCheckerError):
    kind = "persist_error"


class NotifyError(ClassCheckerError):
    kind = "notify_error"


class TokenError(ClassCheckerError):
    kind = "token_error"
