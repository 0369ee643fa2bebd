# src/instances/infrastructure/mappers/instance_mapper.py
from src.gateway.domain.protocols import MessageKind
from src.instances.domain.entities.instance import (
    Instance,
    InstanceSettings,
    InstanceState,
    Integration,
)
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus
from src.instances.infrastructure.models.instance_model import InstanceModel
from src.instances.infrastructure.models.message_model import MessageModel
from src.shared.timeutils import as_utc, utcnow


class InstanceMapper:
    def to_domain(self, model: InstanceModel) -> Instance:
        return Instance(
            id=model.id,
            owner_id=model.owner_id,
            name=model.name,
            pairing_token=model.pairing_token,
            integration=Integration(model.integration),
            settings=InstanceSettings.from_dict(model.settings),
            state=InstanceState(model.state),
            phone_number=model.phone_number,
            status_failures=model.status_failures or 0,
            last_error=model.last_error,
            state_changed_at=as_utc(model.state_changed_at) or utcnow(),
            created_at=as_utc(model.created_at) or utcnow(),
            updated_at=as_utc(model.updated_at) or utcnow(),
        )

    def to_model(self, instance: Instance) -> InstanceModel:
        model = InstanceModel(id=instance.id, owner_id=instance.owner_id, name=instance.name)
        return self.apply(instance, model)

    def apply(self, instance: Instance, model: InstanceModel) -> InstanceModel:
        """Copy mutable fields; id, owner and name are immutable."""
        model.state = instance.state.value
        model.phone_number = instance.phone_number
        model.pairing_token = instance.pairing_token
        model.integration = instance.integration.value
        model.settings = instance.settings.to_dict()
        model.status_failures = instance.status_failures
        model.last_error = instance.last_error
        model.state_changed_at = instance.state_changed_at
        return model


class MessageMapper:
    def to_domain(self, model: MessageModel) -> MessageRecord:
        return MessageRecord(
            id=model.id,
            instance_id=model.instance_id,
            user_id=model.user_id,
            to=model.to_number,
            sender=model.from_number,
            body=model.body,
            type=MessageKind(model.type),
            media_url=model.media_url,
            gateway_message_id=model.gateway_message_id,
            error=model.error,
            status=MessageStatus(model.status),
            timestamp=as_utc(model.timestamp) or utcnow(),
        )

    def to_model(self, record: MessageRecord) -> MessageModel:
        return MessageModel(
            id=record.id,
            instance_id=record.instance_id,
            user_id=record.user_id,
            to_number=record.to,
            from_number=record.sender,
            body=record.body,
            type=record.type.value,
            media_url=record.media_url,
            gateway_message_id=record.gateway_message_id,
            error=record.error,
            status=record.status.value,
            timestamp=record.timestamp,
        )
