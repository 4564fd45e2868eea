"""Service layer exports."""

from . import (
	approval_dispatcher,
	catalog_service,
	credential_service,
	eligibility,
	ledger_store,
	redemption_service,
	review_channel,
	review_sync_service,
)

__all__ = [
	"approval_dispatcher",
	"catalog_service",
	"credential_service",
	"eligibility",
	"ledger_store",
	"redemption_service",
	"review_channel",
	"review_sync_service",
]
