"""Order payment authorization: commands and handler.

Handles the payment lifecycle up to authorization: the gateway handle being
issued, gateway signals (client callback or webhook), and failures detected
before the payer ever reached the gateway.
"""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import OrderDraft, SignalSource


@ordering.command(part_of="OrderDraft")
class RecordAuthorizationRequested:
    order_id = Identifier(required=True)
    handle_id = String(required=True, max_length=255)
    client_secret = String(max_length=255)


@ordering.command(part_of="OrderDraft")
class RecordGatewaySignal:
    order_id = Identifier(required=True)
    succeeded = Boolean(required=True)
    source = String(required=True, max_length=20)  # client, webhook
    handle_id = String(max_length=255)
    failure_reason = String(max_length=500)


@ordering.command(part_of="OrderDraft")
class RecordSubmissionFailure:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@ordering.command_handler(part_of=OrderDraft)
class RecordAuthorizationHandler:
    @handle(RecordAuthorizationRequested)
    def record_authorization_requested(self, command):
        repo = current_domain.repository_for(OrderDraft)
        draft = repo.get(command.order_id)
        draft.begin_authorization(handle_id=command.handle_id, client_secret=command.client_secret)
        repo.add(draft)

    @handle(RecordGatewaySignal)
    def record_gateway_signal(self, command):
        repo = current_domain.repository_for(OrderDraft)
        draft = repo.get(command.order_id)
        outcome = draft.apply_gateway_signal(
            succeeded=command.succeeded,
            source=command.source,
            reason=command.failure_reason,
            handle_id=command.handle_id,
        )
        repo.add(draft)
        return outcome.value

    @handle(RecordSubmissionFailure)
    def record_submission_failure(self, command):
        repo = current_domain.repository_for(OrderDraft)
        draft = repo.get(command.order_id)
        draft.mark_failed(command.reason, source=SignalSource.SUBMISSION.value)
        repo.add(draft)
