from azure.cosmos.aio import ContainerProxy
from typing import Dict, List

from stock_ledger_api.crud.inventory_crud import translate_cosmos_error
from stock_ledger_api.models.alert import AlertAcknowledgement


async def get_acknowledgements(
    container: ContainerProxy, alert_ids: List[str]
) -> Dict[str, AlertAcknowledgement]:
    """
    Acknowledgements for the given alert ids, keyed by alert id.
    """
    if not alert_ids:
        return {}
    try:
        documents = [
            doc
            async for doc in container.query_items(
                query="SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.id)",
                parameters=[{"name": "@ids", "value": alert_ids}],
            )
        ]
    except Exception as e:
        raise translate_cosmos_error(e, "alert acknowledgement lookup") from e
    acknowledgements = [AlertAcknowledgement.model_validate(doc) for doc in documents]
    return {ack.id: ack for ack in acknowledgements}


async def upsert_acknowledgement(
    container: ContainerProxy, acknowledgement: AlertAcknowledgement
) -> AlertAcknowledgement:
    try:
        result = await container.upsert_item(
            body=acknowledgement.model_dump(mode="json", by_alias=True)
        )
    except Exception as e:
        raise translate_cosmos_error(e, "alert acknowledgement") from e
    return AlertAcknowledgement.model_validate(result)
