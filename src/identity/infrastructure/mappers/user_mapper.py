# src/identity/infrastructure/mappers/user_mapper.py
from src.identity.domain.entities.user import User, UserLimits
from src.identity.infrastructure.models.user_limits_model import UserLimitsModel
from src.identity.infrastructure.models.user_model import UserModel
from src.shared.roles import Role
from src.shared.timeutils import as_utc, utcnow


class UserMapper:
    def to_domain(self, model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            role=Role(model.role),
            is_active=bool(model.is_active),
            created_at=as_utc(model.created_at) or utcnow(),
            updated_at=as_utc(model.updated_at) or utcnow(),
        )

    def to_model(self, user: User) -> UserModel:
        return UserModel(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
        )


class UserLimitsMapper:
    def to_domain(self, model: UserLimitsModel) -> UserLimits:
        return UserLimits(
            user_id=model.user_id,
            max_instances=model.max_instances,
            max_messages_per_day=model.max_messages_per_day,
            max_contacts=model.max_contacts,
            max_groups=model.max_groups,
            can_use_webhooks=bool(model.can_use_webhooks),
            can_use_integrations=bool(model.can_use_integrations),
        )

    def apply(self, limits: UserLimits, model: UserLimitsModel) -> UserLimitsModel:
        """Copy limit values onto an existing or fresh ORM row."""
        model.max_instances = limits.max_instances
        model.max_messages_per_day = limits.max_messages_per_day
        model.max_contacts = limits.max_contacts
        model.max_groups = limits.max_groups
        model.can_use_webhooks = limits.can_use_webhooks
        model.can_use_integrations = limits.can_use_integrations
        return model
