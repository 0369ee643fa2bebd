from src.quotas.application.services.quota_ledger import QuotaLedger

__all__ = ["QuotaLedger"]
