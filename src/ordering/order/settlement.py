"""Order settlement: command and handler.

Records the ledger's acknowledgment. Settling twice is harmless.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import OrderDraft


@ordering.command(part_of="OrderDraft")
class RecordSettlement:
    order_id = Identifier(required=True)
    ledger_reference = String(max_length=255)


@ordering.command_handler(part_of=OrderDraft)
class RecordSettlementHandler:
    @handle(RecordSettlement)
    def record_settlement(self, command):
        repo = current_domain.repository_for(OrderDraft)
        draft = repo.get(command.order_id)
        settled = draft.mark_settled(ledger_reference=command.ledger_reference)
        if settled:
            repo.add(draft)
        return settled
