from src.quotas.domain.services.quota_policy import QuotaDecision, QuotaKind, evaluate

__all__ = ["QuotaDecision", "QuotaKind", "evaluate"]
