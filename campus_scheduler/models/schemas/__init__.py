from .notifications import Recipient, DispatchSummary, parse_recipient_batch

__all__ = ["Recipient", "DispatchSummary", "parse_recipient_batch"]
